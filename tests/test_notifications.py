from datetime import date, datetime

from vms.models import NotificationEvent
from vms.services.notification_service import CompositeDispatcher, Recipient
from vms.utils.email import MailDispatcher, build_message

GUEST = Recipient(kind='guest', id=1, name='Amina', phone='+254711000001', email='amina@example.com')


def test_status_change_wording():
    subject, body = build_message('Club', GUEST, NotificationEvent.STATUS_CHANGED, {
        'visit_date': date(2024, 6, 1), 'new_status': 'unapproved',
    })

    assert subject == 'Club: Visit Status Update'
    assert 'pending approval due to capacity limits' in body
    assert 'Jun 01, 2024' in body


def test_host_limit_wording():
    host = Recipient(kind='host', id=7, name='Grace')

    _, body = build_message('Club', host, NotificationEvent.HOST_LIMIT_REACHED, {
        'visit_date': date(2024, 6, 1), 'limit': 4, 'affected_count': 2,
    })

    assert 'daily guest limit (4)' in body
    assert '2 guest(s) are pending approval' in body


def test_sign_out_wording():
    _, body = build_message('Club', GUEST, NotificationEvent.SIGNED_OUT, {
        'sign_out_time': datetime(2024, 6, 1, 16, 45), 'duration': '2h 30m',
    })

    assert body.startswith('Thank you for your visit Amina!')
    assert '04:45 PM after 2h 30m' in body


def test_mail_dispatcher_logs_in_testing_mode(app, caplog):
    with app.app_context():
        with caplog.at_level('INFO'):
            MailDispatcher().notify(GUEST, NotificationEvent.SIGNED_IN, {
                'sign_in_time': datetime(2024, 6, 1, 9, 0),
            })

    assert 'MOCK EMAIL' in caplog.text
    assert 'amina@example.com' in caplog.text


def test_mail_dispatcher_honours_opt_out(app, caplog):
    opted_out = Recipient(kind='guest', id=2, name='Brian', email='brian@example.com', receive_email=False)

    with app.app_context():
        with caplog.at_level('INFO'):
            MailDispatcher().notify(opted_out, NotificationEvent.CANCELLED, {})

    assert 'MOCK EMAIL' not in caplog.text


def test_composite_dispatcher_isolates_failures(dispatcher):
    class Broken:
        def notify(self, recipient, event, context):
            raise RuntimeError('boom')

    CompositeDispatcher([Broken(), dispatcher]).notify(GUEST, NotificationEvent.CANCELLED, {})

    assert len(dispatcher.sent) == 1
