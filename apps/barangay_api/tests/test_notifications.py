"""Notification projection from request state."""
from datetime import datetime
from decimal import Decimal
from types import SimpleNamespace

from apps.barangay_api.models.document import RequestStatus
from apps.barangay_api.utils.notifications import (
    ACTION_PAY_NOW,
    BEING_PREPARED,
    PAYMENT_REQUIRED,
    READY_FOR_PICKUP,
    REJECTED,
    count_notifications,
    project_notifications,
    summarize_notifications,
)


def _req(id, status, amount='50.00', day=1, reason=None):
    return SimpleNamespace(
        id=id,
        status=status,
        amount=Decimal(amount),
        tracking_number=f'DR-{id:08d}',
        document_type='Barangay Clearance',
        rejection_reason=reason,
        request_date=datetime(2026, 3, day, 9, 0),
    )


def test_each_status_maps_to_its_notification():
    items = project_notifications([
        _req(1, RequestStatus.REJECTED, reason='Missing ID'),
        _req(2, RequestStatus.APPROVED),
        _req(3, RequestStatus.PAYMENT_VERIFIED),
        _req(4, RequestStatus.READY_FOR_PICKUP),
    ])
    assert [i['kind'] for i in items] == [READY_FOR_PICKUP, BEING_PREPARED, PAYMENT_REQUIRED, REJECTED]
    assert [i['request_id'] for i in items] == [4, 3, 2, 1]


def test_quiet_states_produce_nothing():
    items = project_notifications([
        _req(1, RequestStatus.PENDING),
        _req(2, RequestStatus.PAYMENT_SUBMITTED),
        _req(3, RequestStatus.RELEASED),
        _req(4, RequestStatus.APPROVED, amount='0.00'),
    ])
    assert items == []


def test_payment_required_carries_pay_now_action_and_amount():
    item = project_notifications([_req(7, RequestStatus.APPROVED, amount='75.00')])[0]
    assert item['action'] == {'type': ACTION_PAY_NOW, 'request_id': 7}
    assert item['amount'] == 75.0
    assert 'PHP 75.00' in item['message']


def test_rejected_message_includes_reason():
    item = project_notifications([_req(9, RequestStatus.REJECTED, reason='Wrong purok')])[0]
    assert item['rejection_reason'] == 'Wrong purok'
    assert 'Reason: Wrong purok' in item['message']


def test_newest_first_within_a_kind():
    items = project_notifications([
        _req(1, RequestStatus.READY_FOR_PICKUP, day=1),
        _req(2, RequestStatus.READY_FOR_PICKUP, day=5),
        _req(3, RequestStatus.READY_FOR_PICKUP, day=3),
    ])
    assert [i['request_id'] for i in items] == [2, 3, 1]


def test_badge_skips_documents_being_prepared():
    requests = [
        _req(1, RequestStatus.PAYMENT_VERIFIED),
        _req(2, RequestStatus.READY_FOR_PICKUP),
        _req(3, RequestStatus.APPROVED),
    ]
    assert count_notifications(requests) == 2

    summary = summarize_notifications(requests)
    assert summary['badge_count'] == 2
    assert summary['counts'][BEING_PREPARED] == 1
    assert len(summary['notifications']) == 3


def test_empty_input():
    assert summarize_notifications([])['badge_count'] == 0
    assert project_notifications(None) == []
