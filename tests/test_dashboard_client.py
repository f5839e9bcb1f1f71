"""
Tests for the client dashboard.

Verifies:
- Every visible collection is fetched and applied together
- A failed fetch discards the whole refresh and keeps previous data
- Transitions are followed by a reload
"""

from conftest import complaint_fields, defect_fields, khata_fields, sign_in_citizen, sign_in_staff
from client.dashboard import Dashboard
from core.workflow import RecordKind, Status


class TestDashboardRefresh:
    def test_supervisor_loads_all_kinds(self, engine, session, backend):
        sign_in_staff(session, "supervisor")
        engine.create_record(RecordKind.DEFECT, defect_fields())
        engine.create_record(RecordKind.KHATA, khata_fields())

        dashboard = Dashboard(engine)
        assert dashboard.refresh() is True
        assert set(dashboard.collections) == set(RecordKind)
        assert dashboard.counts()[RecordKind.DEFECT] == 1
        assert dashboard.counts()[RecordKind.QUBE] == 0
        listed = [call[1] for call in backend.calls if call[0] == "list"]
        assert sorted(k.value for k in listed) == sorted(k.value for k in RecordKind)

    def test_citizen_loads_only_complaints(self, engine, session):
        sign_in_citizen(session)
        engine.create_record(RecordKind.COMPLAINT, complaint_fields())
        dashboard = Dashboard(engine)
        dashboard.refresh()
        assert list(dashboard.collections) == [RecordKind.COMPLAINT]
        assert len(dashboard.records(RecordKind.COMPLAINT)) == 1

    def test_partial_failure_keeps_previous_data(self, engine, session, backend):
        sign_in_staff(session, "supervisor")
        engine.create_record(RecordKind.DEFECT, defect_fields())
        dashboard = Dashboard(engine)
        dashboard.refresh()
        before = dashboard.collections

        engine.create_record(RecordKind.DEFECT, defect_fields(machineName="Tipper 4"))
        backend.fail_kinds.add(RecordKind.QUBE)

        assert dashboard.refresh() is False
        assert dashboard.collections == before
        assert len(dashboard.records(RecordKind.DEFECT)) == 1
        assert dashboard.last_error is not None

        backend.fail_kinds.clear()
        assert dashboard.refresh() is True
        assert len(dashboard.records(RecordKind.DEFECT)) == 2
        assert dashboard.last_error is None

    def test_anonymous_dashboard_is_empty(self, engine):
        dashboard = Dashboard(engine)
        assert dashboard.refresh() is True
        assert dashboard.collections == {}

    def test_transition_then_reload(self, engine, session):
        sign_in_staff(session, "supervisor")
        defect = engine.create_record(RecordKind.DEFECT, defect_fields())
        dashboard = Dashboard(engine)
        dashboard.refresh()

        dashboard.transition(RecordKind.DEFECT, defect.id, "rejected")
        assert dashboard.records(RecordKind.DEFECT)[0].status is Status.REJECTED


class TestDashboardOverHttp:
    def test_admin_dashboard(self, http_adapter):
        from client.settings import ClientSettings, build_services

        session, engine = build_services(ClientSettings(base_url="http://portal.test"), http_session=http_adapter)
        session.login_with_credentials("supervisor1", "supervisor123", "supervisor")
        engine.create_record(RecordKind.DEFECT, defect_fields())
        session.logout()

        session.login_with_credentials("admin1", "admin123", "admin")
        dashboard = Dashboard(engine)
        assert dashboard.refresh() is True
        assert dashboard.counts()[RecordKind.DEFECT] == 1
        assert dashboard.counts()[RecordKind.COMPLAINT] == 0
