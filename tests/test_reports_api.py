import os
from datetime import date, timedelta
from io import BytesIO

from extensions import mail
from models.models import (
    db, Attachment, Comment, CommentLike, DailyPostTracker, ReportAcknowledgement, ShiftReport,
)
import routes.reports


def post_report(client, **form):
    return client.post('/api/reports', data=form, content_type='multipart/form-data')


def test_requires_login(client):
    response = client.get('/api/reports')
    assert response.status_code == 401
    assert response.get_json() == {'error': 'Authentication required'}


def test_create_report_with_rooms_and_files(client, login, employee):
    login(employee)
    response = post_report(
        client,
        priority='medium',
        bodyText='Late check-in for the Smith party',
        notedRooms='[101, 102]',
        stayoverRooms='204, 205',
        arrivals='12',
        occupancyPercentage='87.5',
        files=[(BytesIO(b'%PDF-1.4 test'), 'incident report.pdf')],
    )
    assert response.status_code == 201
    report_id = response.get_json()['reportId']

    db.session.expire_all()
    report = db.session.get(ShiftReport, report_id)
    assert report.author_name == 'David Thompson'
    assert report.noted_rooms == [101, 102]
    assert report.stayover_rooms == [204, 205]
    assert report.arrivals == 12 and report.departures is None
    assert report.occupancy_percentage == 87.5
    assert len(report.attachments) == 1
    attachment = report.attachments[0]
    assert attachment.original_name == 'incident_report.pdf'
    assert os.path.exists(attachment.upload_path)

    detail = client.get(f'/api/reports/{report_id}').get_json()
    assert detail['notedRooms'] == [101, 102]
    assert detail['attachments'][0]['url'] == f'/files/{attachment.filename}'

    download = client.get(detail['attachments'][0]['url'])
    assert download.status_code == 200
    assert download.data == b'%PDF-1.4 test'


def test_create_report_validation(client, login, employee):
    login(employee)
    empty = post_report(client)
    assert empty.status_code == 400
    assert empty.get_json()['error'] == 'Report must include at least one field'

    assert post_report(client, priority='urgent').status_code == 400
    assert post_report(client, arrivals='-1').status_code == 400
    assert post_report(client, occupancyPercentage='120').status_code == 400
    assert post_report(client, notedRooms='[101, "x"]').status_code == 400
    bad_file = post_report(client, files=[(BytesIO(b'MZ'), 'setup.exe')])
    assert bad_file.status_code == 400
    too_many = post_report(client, files=[(BytesIO(b'x'), f'{i}.txt') for i in range(4)])
    assert too_many.status_code == 400
    assert ShiftReport.query.count() == 0


def test_daily_quota_rolls_over_with_the_date(client, login, employee, monkeypatch):
    today = date(2024, 6, 1)
    monkeypatch.setattr(routes.reports, 'local_today', lambda: today)
    db.session.add(DailyPostTracker(user_id=employee.id, date=today, post_count=24))
    db.session.commit()
    login(employee)

    assert post_report(client, bodyText='25th report').status_code == 201
    denied = post_report(client, bodyText='26th report')
    assert denied.status_code == 400
    assert 'Daily limit of 25' in denied.get_json()['error']

    monkeypatch.setattr(routes.reports, 'local_today', lambda: today + timedelta(days=1))
    assert post_report(client, bodyText='First report tomorrow').status_code == 201

    db.session.expire_all()
    counts = {t.date: t.post_count for t in DailyPostTracker.query.filter_by(user_id=employee.id)}
    assert counts == {today: 25, today + timedelta(days=1): 1}


def test_tracker_created_by_concurrent_request(client, login, employee, monkeypatch):
    today = date(2024, 6, 1)
    monkeypatch.setattr(routes.reports, 'local_today', lambda: today)

    def count_then_concurrent_post(user_id, day):
        # Another request records its first post right after this one reads the count
        db.session.add(DailyPostTracker(user_id=user_id, date=day, post_count=1))
        db.session.flush()
        return 0
    monkeypatch.setattr(routes.reports, 'posts_on', count_then_concurrent_post)
    login(employee)

    assert post_report(client, bodyText='Shift start').status_code == 201
    db.session.expire_all()
    assert DailyPostTracker.query.filter_by(user_id=employee.id).one().post_count == 2
    assert ShiftReport.query.count() == 1


def test_quota_used_up_after_check_is_denied(client, login, employee, monkeypatch, upload_dir):
    today = date(2024, 6, 1)
    monkeypatch.setattr(routes.reports, 'local_today', lambda: today)
    db.session.add(DailyPostTracker(user_id=employee.id, date=today, post_count=25))
    db.session.commit()
    # The count read before the insert is stale by one
    monkeypatch.setattr(routes.reports, 'posts_on', lambda user_id, day: 24)
    login(employee)
    files_before = set(os.listdir(upload_dir))

    response = post_report(client, bodyText='One too many', files=[(BytesIO(b'x'), 'note.txt')])
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Daily limit of 25 reports reached'

    db.session.expire_all()
    assert ShiftReport.query.count() == 0
    assert Attachment.query.count() == 0
    assert DailyPostTracker.query.filter_by(user_id=employee.id).one().post_count == 25
    assert set(os.listdir(upload_dir)) == files_before


def test_room_numbers_must_be_whole(client, login, employee):
    login(employee)
    fractional = post_report(client, notedRooms='[101.7]')
    assert fractional.status_code == 400
    assert fractional.get_json()['error'] == 'notedRooms must be a whole number'
    assert post_report(client, stayoverRooms='[3.5, 4]').status_code == 400
    assert ShiftReport.query.count() == 0

    report_id = post_report(client, notedRooms='[101.0]').get_json()['reportId']
    assert client.get(f'/api/reports/{report_id}').get_json()['notedRooms'] == [101]


def test_daily_post_count_endpoint(client, login, employee):
    login(employee)
    assert client.get('/api/daily-post-count').get_json() == {'count': 0, 'limit': 25}
    post_report(client, bodyText='One')
    assert client.get('/api/daily-post-count').get_json()['count'] == 1


def test_high_priority_report_alerts_subscribed_managers(client, login, employee, manager, make_user):
    make_user('frank', 'manager', email='frank@example.com', alerts=False)
    make_user('gone', 'manager', email='gone@example.com', alerts=True, archived=True)
    login(employee)
    with mail.record_messages() as outbox:
        response = post_report(client, priority='high', bodyText='Fire alarm tested')
    assert response.status_code == 201
    assert len(outbox) == 1
    assert outbox[0].recipients == ['michael@example.com']
    assert 'David Thompson' in outbox[0].subject
    assert 'Fire alarm tested' in outbox[0].body

    db.session.expire_all()
    tracker = DailyPostTracker.query.filter_by(user_id=employee.id).one()
    assert tracker.post_count == 1


def test_low_priority_report_sends_no_alert(client, login, employee, manager):
    login(employee)
    with mail.record_messages() as outbox:
        post_report(client, priority='low', bodyText='Ice machine slow')
    assert outbox == []


def test_mail_failure_does_not_fail_report(client, login, employee, manager, monkeypatch):
    def broken_send(message):
        raise OSError('SMTP down')
    monkeypatch.setattr(mail, 'send', broken_send)
    login(employee)
    response = post_report(client, priority='high', bodyText='Boiler pressure low')
    assert response.status_code == 201
    assert ShiftReport.query.count() == 1


def test_archived_report_hidden_from_employees(client, login, employee, manager):
    login(employee)
    report_id = post_report(client, bodyText='R1').get_json()['reportId']

    login(manager)
    response = client.patch(f'/api/reports/{report_id}', json={'isHidden': True})
    assert response.status_code == 200
    assert response.get_json()['isHidden'] is True
    assert [r['id'] for r in client.get('/api/reports?showArchived=true').get_json()['reports']] == [report_id]
    assert client.get('/api/reports').get_json()['reports'] == []

    login(employee)
    assert client.get('/api/reports?showArchived=true').get_json()['reports'] == []
    assert client.get(f'/api/reports/{report_id}').status_code == 404


def test_archive_requires_manager_and_boolean(client, login, employee, manager):
    login(employee)
    report_id = post_report(client, bodyText='R1').get_json()['reportId']
    assert client.patch(f'/api/reports/{report_id}', json={'isHidden': True}).status_code == 403
    login(manager)
    assert client.patch(f'/api/reports/{report_id}', json={'isHidden': 'yes'}).status_code == 400


def test_list_rejects_malformed_criteria(client, login, employee):
    login(employee)
    response = client.get('/api/reports?dateFrom=yesterday')
    assert response.status_code == 400
    assert 'dateFrom' in response.get_json()['error']
    too_big = client.get('/api/reports?limit=101')
    assert too_big.status_code == 400
    assert too_big.get_json()['error'] == 'limit must not exceed 100'


def test_list_pagination(client, login, employee):
    login(employee)
    for i in range(3):
        post_report(client, bodyText=f'Report {i}')
    page = client.get('/api/reports?limit=2').get_json()
    assert len(page['reports']) == 2 and page['hasMore'] is True
    page = client.get('/api/reports?limit=2&page=2').get_json()
    assert len(page['reports']) == 1 and page['hasMore'] is False


def test_acknowledge_once(client, login, employee, manager):
    login(employee)
    report_id = post_report(client, bodyText='Pool closed early').get_json()['reportId']

    first = client.post(f'/api/reports/{report_id}/acknowledge')
    assert first.status_code == 200
    assert [a['name'] for a in first.get_json()['acknowledgements']] == ['David Thompson']

    second = client.post(f'/api/reports/{report_id}/acknowledge')
    assert second.status_code == 409
    assert second.get_json()['error'] == 'Report already acknowledged'
    assert ReportAcknowledgement.query.count() == 1

    login(manager)
    assert client.post(f'/api/reports/{report_id}/acknowledge').status_code == 403


def test_resolve_once(client, login, employee, manager):
    login(employee)
    report_id = post_report(client, bodyText='Elevator stuck').get_json()['reportId']
    assert client.post(f'/api/reports/{report_id}/resolve').status_code == 403

    login(manager)
    assert client.post(f'/api/reports/{report_id}/resolve').get_json()['isResolved'] is True
    again = client.post(f'/api/reports/{report_id}/resolve')
    assert again.status_code == 409
    assert again.get_json()['error'] == 'Report already resolved'


def test_admin_delete_cascades(client, login, employee, manager, admin):
    login(employee)
    report_id = post_report(
        client, bodyText='Broken window', files=[(BytesIO(b'jpeg'), 'window.jpg')],
    ).get_json()['reportId']
    client.post(f'/api/reports/{report_id}/acknowledge')
    stored_path = Attachment.query.one().upload_path

    login(manager)
    comment_id = client.post('/api/comments', data={'shiftReportId': report_id, 'content': 'Glazier booked'},
                             content_type='multipart/form-data').get_json()['id']
    assert client.delete(f'/api/reports/{report_id}').status_code == 403

    login(employee)
    client.post(f'/api/comments/{comment_id}/like')

    login(admin)
    assert client.delete(f'/api/reports/{report_id}').status_code == 200
    assert client.delete(f'/api/reports/{report_id}').status_code == 404

    db.session.expire_all()
    assert ShiftReport.query.count() == 0
    assert Attachment.query.count() == 0
    assert Comment.query.count() == 0
    assert CommentLike.query.count() == 0
    assert ReportAcknowledgement.query.count() == 0
    assert not os.path.exists(stored_path)


def test_pdf_and_csv_exports_for_managers(client, login, employee, manager):
    login(employee)
    report_id = post_report(client, priority='high', bodyText='Generator test', notedRooms='301').get_json()['reportId']
    assert client.get(f'/api/reports/{report_id}/pdf').status_code == 403
    assert client.get('/api/reports/export').status_code == 403

    login(manager)
    pdf = client.get(f'/api/reports/{report_id}/pdf')
    assert pdf.status_code == 200
    assert pdf.mimetype == 'application/pdf'
    assert pdf.data.startswith(b'%PDF')

    csv = client.get('/api/reports/export?priority=high')
    assert csv.status_code == 200
    assert csv.mimetype == 'text/csv'
    text = csv.data.decode('utf-8')
    assert 'Generator test' in text
    assert '301' in text


def test_security_headers(client):
    response = client.get('/api/me')
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Frame-Options'] == 'DENY'
