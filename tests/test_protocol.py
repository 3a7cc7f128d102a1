from datetime import datetime

from quoteflow.extensions import db
from quoteflow.models import AuditLog, ReportRecord

WAITING = "SIM - AGUARD. PROTOCOLO"
DONE = "RECEBIDO - PROTOCOLADO"


def _get(app, record_id):
    with app.app_context():
        record = db.session.get(ReportRecord, record_id)
        return record.report_delivery, record.notes


def test_queue_lists_only_pending_oldest_first(app, protocol_client, make_record):
    make_record(prefix="NEWER", report_delivery=WAITING, created_at=datetime(2026, 2, 2))
    make_record(prefix="OLDER", report_delivery="ENTREGUE PEÇAS PROTOCOLO", created_at=datetime(2026, 2, 1))
    make_record(prefix="FINISHED", report_delivery=DONE)
    make_record(prefix="NOTYET", report_delivery="NÃO")

    html = protocol_client.get("/protocol/").get_data(as_text=True)
    assert "FINISHED" not in html
    assert "NOTYET" not in html
    assert html.index("OLDER") < html.index("NEWER")


def test_queue_search(protocol_client, make_record):
    make_record(prefix="V-1", department="OBRAS", report_delivery=WAITING)
    make_record(prefix="V-2", department="SAÚDE", report_delivery=WAITING)

    html = protocol_client.get("/protocol/?q=obras").get_data(as_text=True)
    assert "V-1" in html
    assert "V-2" not in html


def test_confirm_marks_record_as_protocolled(app, protocol_client, make_record):
    record_id = make_record(report_delivery=WAITING)

    response = protocol_client.post(f"/protocol/{record_id}/confirm")
    assert response.status_code == 302
    assert _get(app, record_id)[0] == DONE

    with app.app_context():
        entry = AuditLog.query.filter_by(entity_id=record_id, action="PROTOCOL").one()
        assert entry.email_snapshot == "protocolo@volus.test"


def test_confirm_rejects_records_that_are_not_pending(app, protocol_client, make_record):
    record_id = make_record(report_delivery="NÃO")

    response = protocol_client.post(f"/protocol/{record_id}/confirm", follow_redirects=True)
    assert "não está aguardando protocolo" in response.get_data(as_text=True)
    assert _get(app, record_id)[0] == "NÃO"


def test_confirm_unknown_record_is_404(protocol_client):
    assert protocol_client.post("/protocol/nope/confirm").status_code == 404


def test_confirm_batch(app, protocol_client, make_record):
    a = make_record(report_delivery=WAITING)
    b = make_record(report_delivery="ENTREGUE SERVIÇO PROTOCOLO")
    c = make_record(report_delivery="NÃO")

    response = protocol_client.post(
        "/protocol/confirm-batch",
        data={"record_ids": [a, b, c]},
        follow_redirects=True,
    )
    assert "2 protocolos confirmados" in response.get_data(as_text=True)
    assert _get(app, a)[0] == DONE
    assert _get(app, b)[0] == DONE
    assert _get(app, c)[0] == "NÃO"


def test_confirm_batch_with_empty_selection_is_a_no_op(protocol_client):
    response = protocol_client.post("/protocol/confirm-batch", data={}, follow_redirects=True)
    assert response.status_code == 200
    assert "Nenhum registro selecionado" in response.get_data(as_text=True)


def test_inconsistency_note_is_appended_and_status_kept(app, protocol_client, make_record):
    first = make_record(report_delivery=WAITING)
    second = make_record(report_delivery=WAITING, notes="FALTA ASSINATURA")

    protocol_client.post(f"/protocol/{first}/inconsistency", data={"note": "valor divergente"})
    protocol_client.post(f"/protocol/{second}/inconsistency", data={"note": "nf ilegível"})

    assert _get(app, first) == (WAITING, "INCONSISTÊNCIA: VALOR DIVERGENTE")
    assert _get(app, second) == (WAITING, "FALTA ASSINATURA | INCONSISTÊNCIA: NF ILEGÍVEL")


def test_blank_inconsistency_note_is_rejected(app, protocol_client, make_record):
    record_id = make_record(report_delivery=WAITING, notes="ORIGINAL")

    response = protocol_client.post(
        f"/protocol/{record_id}/inconsistency",
        data={"note": "   "},
        follow_redirects=True,
    )
    assert "Descreva a inconsistência" in response.get_data(as_text=True)
    assert _get(app, record_id)[1] == "ORIGINAL"


def test_workshop_role_cannot_confirm(workshop_client, make_record, app):
    record_id = make_record(report_delivery=WAITING)
    assert workshop_client.post(f"/protocol/{record_id}/confirm").status_code == 403
    assert _get(app, record_id)[0] == WAITING
