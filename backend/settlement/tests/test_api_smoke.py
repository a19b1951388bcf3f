from fastapi.testclient import TestClient

from settlement.main import app


def _register_owner(client):
    r = client.post('/auth/register', json={
        'email': 'owner@acme.com',
        'password': 'secret',
        'tenant_name': 'Acme',
        'tenant_slug': 'acme',
    })
    assert r.status_code == 200
    return _login(client, 'owner@acme.com')


def _login(client, email):
    r = client.post('/auth/login', json={'email': email, 'password': 'secret'}, headers={'X-Tenant-ID': 'acme'})
    assert r.status_code == 200
    return {'Authorization': f"Bearer {r.json()['access_token']}", 'X-Tenant-ID': 'acme'}


def _create_order(client, headers, gross):
    r = client.post('/orders/', json={
        'customer_code': 'C001',
        'customer_name': 'Loja Centro',
        'gross_value': gross,
    }, headers=headers)
    assert r.status_code == 200
    return r.json()


def test_health():
    client = TestClient(app)
    r = client.get('/health')
    assert r.status_code == 200
    assert r.json()['status'] == 'ok'


def test_direct_settlement_and_credit_flow():
    client = TestClient(app)
    owner = _register_owner(client)

    order = _create_order(client, owner, 100)
    assert order['order_number'] == 'PED-000001'
    assert order['status'] == 'open'
    assert order['remaining_balance'] == 100.0

    r = client.post(f"/settlements/orders/{order['id']}", json={
        'payments': [{'method': 'cash', 'amount': '130'}],
        'expected_version': order['version'],
    }, headers=owner)
    assert r.status_code == 200
    body = r.json()
    assert body['record']['record_number'] == 'BOR-000001'
    assert body['outcomes'][0]['status'] == 'paid'
    assert body['outcomes'][0]['credit_generated'] == 30.0

    r = client.get('/credits/customers/C001/available', headers=owner)
    assert r.json()['available'] == 30.0

    r = client.get(f"/orders/{order['id']}/history", headers=owner)
    assert r.status_code == 200
    assert r.json()[0]['settlement_record_id'] == body['record']['id']

    r = client.post(f"/settlements/orders/{order['id']}", json={
        'payments': [{'method': 'cash', 'amount': '10'}],
        'expected_version': order['version'],
    }, headers=owner)
    assert r.status_code == 409
    assert r.json()['error'] == 'ConcurrentModification'


def test_errors_are_reported_with_their_type():
    client = TestClient(app)
    owner = _register_owner(client)
    order = _create_order(client, owner, 100)

    r = client.post(f"/settlements/orders/{order['id']}", json={'payments': [{'method': 'cash', 'amount': '0'}]}, headers=owner)
    assert r.status_code == 400
    assert r.json()['error'] == 'InvalidPaymentAmount'

    r = client.post(f"/settlements/orders/{order['id']}", json={
        'payments': [{'method': 'cash', 'amount': '10'}],
        'credit_amount': '50',
    }, headers=owner)
    assert r.status_code == 400
    assert r.json()['error'] == 'InsufficientCreditRequested'

    r = client.post(f"/orders/{order['id']}/deposits", json={'payment_method': 'pix', 'amount': '150'}, headers=owner)
    assert r.status_code == 409
    assert r.json()['error'] == 'DepositExceedsOrderValue'

    r = client.post(f"/orders/{order['id']}/deposits", json={
        'payment_method': 'pix', 'amount': '150', 'confirm_excess': True,
    }, headers=owner)
    assert r.status_code == 200

    r = client.post('/settlements/orders/9999', json={'payments': [{'method': 'cash', 'amount': '10'}]}, headers=owner)
    assert r.status_code == 404


def test_pending_settlement_review_flow():
    client = TestClient(app)
    owner = _register_owner(client)

    r = client.post('/auth/users', json={
        'email': 'rep@acme.com', 'password': 'secret', 'role': 'representative', 'customer_code': 'C001',
    }, headers=owner)
    assert r.status_code == 200
    rep = _login(client, 'rep@acme.com')

    r = client.post('/credits/manual', json={
        'customer_code': 'C001', 'amount': '30', 'justification': 'Damaged goods',
    }, headers=owner)
    assert r.status_code == 200
    order = _create_order(client, owner, 200)

    r = client.post(f"/settlements/orders/{order['id']}", json={'payments': [{'method': 'cash', 'amount': '10'}]}, headers=rep)
    assert r.status_code == 403

    r = client.post('/pending-settlements/', json={
        'order_ids': [order['id']],
        'payments': [{'method': 'pix', 'amount': '170'}],
        'credit_amount': '30',
        'attachments': ['receipt.jpg'],
    }, headers=rep)
    assert r.status_code == 200
    pending = r.json()
    assert pending['status'] == 'pending'
    assert pending['original_total'] == 200.0

    r = client.get(f"/orders/{order['id']}", headers=owner)
    assert r.json()['status'] == 'open'

    r = client.get('/notifications/', headers=owner)
    assert len(r.json()) == 1
    r = client.patch(f"/notifications/{r.json()[0]['id']}/read", headers=owner)
    assert r.json()['read'] is True

    r = client.post(f"/pending-settlements/{pending['id']}/approve", headers=rep)
    assert r.status_code == 403

    r = client.post(f"/pending-settlements/{pending['id']}/reject", json={'reason': ''}, headers=owner)
    assert r.status_code == 400
    assert r.json()['error'] == 'RejectionReasonRequired'

    r = client.post(f"/pending-settlements/{pending['id']}/approve", headers=owner)
    assert r.status_code == 200
    approved = r.json()
    assert approved['request']['status'] == 'approved'
    assert approved['record']['kind'] == 'approved'
    assert approved['record']['credit_applied'] == 30.0

    r = client.get(f"/orders/{order['id']}", headers=rep)
    assert r.json()['status'] == 'paid'
    r = client.get('/credits/customers/C001/available', headers=owner)
    assert r.json()['available'] == 0.0

    r = client.get(f"/status-history/pending_settlement/{pending['id']}", headers=owner)
    assert [h['new_status'] for h in r.json()] == ['approved', 'pending']

    r = client.post(f"/pending-settlements/{pending['id']}/reject", json={'reason': 'Late'}, headers=owner)
    assert r.status_code == 409
    assert r.json()['error'] == 'InvalidStateTransition'
