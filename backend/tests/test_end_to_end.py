"""
Scénario complet sur une vraie collection (SQLite temporaire) :
inscription, présence, blocage, suppression pendant que la fenêtre de détails est ouverte.
"""

import asyncio

from schoolportal.schemas.session import PAGE_STUDENT_DASHBOARD, PAGE_STUDENT_LOGIN
from schoolportal.services.portal_service import AUTHORIZATION, MSG_ACCOUNT_BLOCKED, Failure


def test_parcours_inscription_presence_blocage_suppression(make_portal):
    async def scenario():
        portal = make_portal()
        await portal.start()
        try:
            # Inscription : premier élève de la collection
            asha_view = portal.open_view()
            assert await portal.student_login(asha_view, "Asha", "CS001") is None
            roster = await portal.synchronizer.wait_for(lambda r: len(r) == 1, timeout=2)
            asha = roster[0]
            assert (asha.attended_classes, asha.total_classes, asha.is_blocked) == (0, 10, False)
            assert portal.get_view(asha_view).page == PAGE_STUDENT_DASHBOARD

            admin = portal.open_view()
            assert portal.admin_login(admin, "admin", "admin") is None

            # Présence
            report = await portal.save_attendance(["CS001"])
            assert report.succeeded == ["CS001"]
            roster = await portal.synchronizer.wait_for(lambda r: r[0].attended_classes == 1, timeout=2)
            assert roster[0].attendance_percentage == 10
            assert portal.get_view(asha_view).user.student.attended_classes == 1

            # Blocage : nouvelle connexion refusée
            assert await portal.toggle_block("CS001") is None
            await portal.synchronizer.wait_for(lambda r: r[0].is_blocked, timeout=2)
            retry = await portal.student_login(portal.open_view(), "Asha", "CS001")
            assert retry == Failure(AUTHORIZATION, MSG_ACCOUNT_BLOCKED)

            # Suppression avec la fenêtre de détails ouverte
            assert portal.select_student(admin, "CS001") is None
            assert portal.get_view(admin).selected_student.is_blocked is True
            assert await portal.delete_student("CS001") is None
            await portal.synchronizer.wait_for(lambda r: len(r) == 0, timeout=2)

            return portal.get_view(admin), portal.get_view(asha_view)
        finally:
            await portal.close()

    admin_state, asha_state = asyncio.run(scenario())

    assert admin_state.selected_student is None
    assert admin_state.is_admin
    assert asha_state.user is None
    assert asha_state.page == PAGE_STUDENT_LOGIN
