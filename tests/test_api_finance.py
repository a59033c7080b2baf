def test_staff_sees_only_partner_loans(north_client, south_client, unassigned_client, admin_client):
    assert [loan["id"] for loan in north_client.get("/finance/api/loans").get_json()["loans"]] == [1]
    assert [loan["id"] for loan in south_client.get("/finance/api/loans").get_json()["loans"]] == [2]
    assert unassigned_client.get("/finance/api/loans").get_json()["loans"] == []
    assert admin_client.get("/finance/api/loans").get_json()["count"] == 3


def test_loan_detail_access(north_client):
    resp = north_client.get("/finance/api/loans/1")
    body = resp.get_json()
    assert resp.status_code == 200
    assert body["customer"]["name"] == "Rahul Sharma"
    assert len(body["repayments"]) == 12
    assert body["outstanding"] < 100000

    assert north_client.get("/finance/api/loans/2").status_code == 403
    assert north_client.get("/finance/api/loans/99").status_code == 404


def test_loan_schedule(admin_client):
    body = admin_client.get("/finance/api/loans/1/schedule").get_json()
    assert body["emi"] == 8885
    assert len(body["schedule"]) == 12
    assert sum(row["principal"] for row in body["schedule"]) == 100000


def test_emi_calculator(north_client):
    body = north_client.get("/finance/api/emi-calculator?principal=100000&interest_rate=12&tenure_months=12").get_json()
    assert body["summary"]["emi"] == 8885
    assert body["summary"]["total_interest"] == 6620
    assert body["schedule"][-1]["outstanding_balance"] == 0

    resp = north_client.post("/finance/api/emi-calculator", json={"principal": -1, "interest_rate": 12, "tenure_months": 12})
    assert resp.status_code == 400


def test_prepayment_calculator(north_client):
    body = north_client.post("/finance/api/prepayment-calculator", json={
        "principal": 100000, "interest_rate": 12, "tenure_months": 12,
        "prepayment_amount": 20000, "months_paid": 3,
    }).get_json()
    assert body["status"] == "success"
    assert body["new_tenure"] == 9
    assert body["interest_saved"] > 0


def test_application_flow_over_http(north_client, store):
    resp = north_client.post("/finance/api/applications", json={
        "customer_id": 2, "product_id": 1, "amount": 60000, "tenure_months": 12, "purpose": "Equipment",
    })
    assert resp.status_code == 201
    app_id = resp.get_json()["application"]["id"]

    for status in ("Submitted", "Under Review"):
        assert north_client.post(f"/finance/api/applications/{app_id}/status", json={"status": status}).status_code == 200
    body = north_client.post(f"/finance/api/applications/{app_id}/status",
                             json={"status": "Approved", "disbursement_date": "2026-06-01"}).get_json()
    assert body["application"]["status"] == "Approved"
    assert body["loan"]["amount"] == 60000
    assert body["loan"]["customer_id"] == 2

    bad = north_client.post(f"/finance/api/applications/{app_id}/status", json={"status": "Draft"})
    assert bad.status_code == 400
    assert bad.get_json()["status"] == "error"


def test_staff_cannot_apply_for_hidden_customer(north_client):
    resp = north_client.post("/finance/api/applications", json={
        "customer_id": 3, "product_id": 1, "amount": 60000, "tenure_months": 12, "purpose": "Equipment",
    })
    assert resp.status_code == 403


def test_pay_emi_over_http(north_client, store):
    body = north_client.post("/finance/api/loans/1/pay", json={"payment_mode": "UPI", "paid_date": "2026-06-15"}).get_json()
    assert body["status"] == "success"
    assert body["repayment"]["installment_number"] == 4
    assert body["repayment"]["status"] == "Paid"
    assert body["repayment"]["collection_agent"] == "North Staff"
    assert body["penalty"] is None

    partial = north_client.post("/finance/api/loans/1/pay", json={"amount": 1000, "paid_date": "2026-06-20"})
    assert partial.get_json()["repayment"]["status"] == "Partial"
    too_much = north_client.post("/finance/api/loans/1/pay", json={"amount": 100000, "paid_date": "2026-06-20"})
    assert too_much.status_code == 400


def test_collections_assign_and_refresh(admin_client, south_client):
    rows = south_client.get("/finance/api/collections?status=Overdue").get_json()["collections"]
    assert len(rows) == 2
    assert {r["customer_name"] for r in rows} == {"Amit Kumar"}

    resp = south_client.post("/finance/api/collections/assign",
                             json={"loan_id": 2, "collection_agent": "Meena Iyer", "priority": "Critical"})
    assert resp.status_code == 200
    assert len(resp.get_json()["collections"]) == 24
    assert south_client.post("/finance/api/collections/assign",
                             json={"loan_id": 1, "collection_agent": "X"}).status_code == 403

    assert south_client.post("/finance/api/collections/refresh", json={"as_of": "2026-06-15"}).status_code == 403
    body = admin_client.post("/finance/api/collections/refresh", json={"as_of": "2026-08-01"}).get_json()
    assert body["defaulted_loans"] == [2]


def test_topup_and_closure_endpoints(admin_client, north_client, store):
    resp = north_client.post("/finance/api/top-ups", json={"loan_id": 1, "requested_amount": 20000})
    assert resp.status_code == 201
    topup = resp.get_json()["top_up"]
    assert (topup["tenure_months"], topup["interest_rate"]) == (6, 15)
    assert north_client.post(f"/finance/api/top-ups/{topup['id']}/approve").status_code == 403
    assert admin_client.post(f"/finance/api/top-ups/{topup['id']}/approve").get_json()["top_up"]["status"] == "Approved"
    assert admin_client.post(f"/finance/api/top-ups/{topup['id']}/maybe").status_code == 400

    closure = north_client.post("/finance/api/closures", json={"loan_id": 1, "remarks": "Paying off"}).get_json()["closure"]
    assert closure["closed_by"] == "North Staff"
    body = admin_client.post(f"/finance/api/closures/{closure['id']}/finalize").get_json()
    assert body["loan"]["status"] == "PreClosed"
    assert [c["status"] for c in north_client.get("/finance/api/closures").get_json()["closures"]] == ["Closed"]


def test_vouchers_and_ledger(admin_client, north_client, south_client):
    resp = north_client.post("/finance/api/vouchers", json={
        "type": "Receipt", "amount": 500, "note": "Cheque bounce charge", "loan_id": 1, "category": "Penalty"})
    assert resp.status_code == 201
    voucher = resp.get_json()["voucher"]

    receipt = north_client.get(f"/finance/api/vouchers/{voucher['id']}/receipt").get_json()
    assert receipt["amount_words"] == "Five Hundred Rupees Only"
    assert receipt["organisation_name"] == "LoanDesk Finance"
    assert south_client.get(f"/finance/api/vouchers/{voucher['id']}/receipt").status_code == 403

    assert north_client.post("/finance/api/vouchers", json={
        "type": "Receipt", "amount": 500, "note": "x", "loan_id": 2}).status_code == 403
    assert north_client.post("/finance/api/vouchers", json={
        "type": "Receipt", "amount": 500, "note": "No reference"}).status_code == 400

    south_vouchers = south_client.get("/finance/api/vouchers").get_json()["vouchers"]
    assert all(v["customer_id"] in (3, 4) for v in south_vouchers)

    ledger = north_client.get("/finance/api/customers/1/ledger").get_json()
    assert ledger["ledger"][-1]["balance_after"] == ledger["balance"]
    assert north_client.get("/finance/api/customers/3/ledger").status_code == 403

    assert north_client.post("/finance/api/journals", json={"entry": "x", "amount": 1, "type": "Debit"}).status_code == 403
    assert admin_client.post("/finance/api/journals", json={
        "entry": "Provision", "amount": 1000, "type": "Debit"}).status_code == 201


def test_non_finite_application_inputs_rejected(north_client, store):
    base = {"customer_id": 2, "product_id": 1, "tenure_months": 12, "purpose": "Equipment"}
    for amount in ("nan", "inf", "-inf", "NaN"):
        resp = north_client.post("/finance/api/applications", json={**base, "amount": amount})
        assert resp.status_code == 400, amount
    for rate in (-2, "nan", "inf", "abc"):
        resp = north_client.post("/finance/api/applications", json={**base, "amount": 60000, "interest_rate": rate})
        assert resp.status_code == 400, rate
        assert resp.get_json()["message"] == "Interest rate must be a non-negative number"
    assert len(store.loan_applications) == 6

    ok = north_client.post("/finance/api/applications", json={**base, "amount": 60000, "interest_rate": "13.5"})
    assert ok.status_code == 201
    assert ok.get_json()["application"]["interest_rate"] == 13.5


def test_calculators_reject_unusable_numbers(north_client):
    for query in ("principal=inf&interest_rate=12&tenure_months=12",
                  "principal=nan&interest_rate=12&tenure_months=12",
                  "principal=100000&interest_rate=nan&tenure_months=12",
                  "principal=100000&interest_rate=12&tenure_months=inf",
                  "principal=1e13&interest_rate=12&tenure_months=12",
                  "principal=100000&interest_rate=500&tenure_months=12",
                  "principal=100000&interest_rate=12&tenure_months=1000"):
        resp = north_client.get(f"/finance/api/emi-calculator?{query}")
        assert resp.status_code == 400, query
        assert resp.get_json()["status"] == "error"

    resp = north_client.post("/finance/api/prepayment-calculator", json={
        "principal": "inf", "interest_rate": 12, "tenure_months": 12,
        "prepayment_amount": 20000, "months_paid": 3,
    })
    assert resp.status_code == 400


def test_list_filters_reject_unknown_values(north_client, admin_client):
    assert [loan["id"] for loan in north_client.get("/finance/api/loans?status=Active").get_json()["loans"]] == [1]
    assert north_client.get("/finance/api/loans?amortization_type=EMI").get_json()["count"] == 1
    for url in ("/finance/api/loans?status=Open",
                "/finance/api/loans?amortization_type=Balloon",
                "/finance/api/applications?status=Pending",
                "/finance/api/collections?priority=Urgent",
                "/finance/api/collections?status=Late",
                "/finance/api/top-ups?status=Pending",
                "/finance/api/closures?status=Open",
                "/finance/api/vouchers?type=Refund",
                "/finance/api/penalties?penalty_type=Fine",
                "/finance/api/penalties?calculation_method=Flat"):
        resp = admin_client.get(url)
        assert resp.status_code == 400, url
        assert resp.get_json()["status"] == "error"


def test_penalties_listing(north_client, south_client):
    body = north_client.post("/finance/api/loans/1/pay", json={"paid_date": "2026-06-20"}).get_json()
    expected = round(body["repayment"]["expected_amount"] * 2 / 100, 2)
    assert body["penalty"]["amount"] == expected

    listing = north_client.get("/finance/api/penalties?penalty_type=LatePayment&calculation_method=Percentage").get_json()
    assert [p["loan_id"] for p in listing["penalties"]] == [1]
    assert listing["total"] == expected
    assert north_client.get("/finance/api/penalties?penalty_type=PreClosure").get_json()["penalties"] == []
    assert south_client.get("/finance/api/penalties").get_json()["penalties"] == []


def test_bad_dates_are_client_errors(north_client, admin_client):
    assert north_client.post("/finance/api/loans/1/pay", json={"paid_date": "20/06/2026"}).status_code == 400
    assert admin_client.post("/finance/api/collections/refresh", json={"as_of": "soon"}).status_code == 400
    assert admin_client.get("/finance/api/vouchers?start_date=last-week").status_code == 400
