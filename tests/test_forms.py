import pytest

from models import AufmassForm, FormImage, StatusHistory, Abnahme, AbnahmeImage
from services.pdf_renderer import build_template_data

class TestFormPersistence:
    """Saving, loading and updating forms."""

    @pytest.mark.asyncio
    async def test_create_and_reload(self, test_client, auth_headers, complete_form):
        complete_form["weitereProdukte"] = [{
            "id": "p1", "category": "MARKISE", "productType": "AUFGLAS", "model": "W350",
            "specifications": {"breite": 4000, "tiefe": 3000},
        }]
        response = await test_client.post("/api/forms", json=complete_form, headers=auth_headers)

        assert response.status_code == 200
        created = response.json()
        assert created["status"] == "neu"
        assert created["statusDate"]

        response = await test_client.get(f"/api/forms/{created['id']}", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["productSelection"] == complete_form["productSelection"]
        assert data["specifications"] == complete_form["specifications"]
        assert data["weitereProdukte"] == complete_form["weitereProdukte"]
        assert data["kundeNachname"] == "Musterfrau"
        assert data["bilder"] == []
        assert data["locked"] is False
        assert data["hasPdf"] is False

    @pytest.mark.asyncio
    async def test_create_records_history(self, test_client, auth_headers, complete_form, test_user):
        response = await test_client.post("/api/forms", json=complete_form, headers=auth_headers)
        form_id = response.json()["id"]

        form = await AufmassForm.get(id=form_id).prefetch_related("created_by")
        assert form.created_by.id == test_user.id

        response = await test_client.get(f"/api/forms/{form_id}/status-history", headers=auth_headers)
        history = response.json()
        assert len(history) == 1
        assert history[0]["status"] == "neu"
        assert history[0]["changedBy"] == "Test User"

    @pytest.mark.asyncio
    async def test_multiple_models_are_joined(self, test_client, auth_headers, complete_form):
        complete_form["productSelection"]["model"] = ["Premiumline", "Topline"]
        response = await test_client.post("/api/forms", json=complete_form, headers=auth_headers)

        form = await AufmassForm.get(id=response.json()["id"])
        assert form.model == "Premiumline,Topline"
        assert response.json()["productSelection"]["model"] == ["Premiumline", "Topline"]

    @pytest.mark.asyncio
    async def test_partial_update(self, test_client, auth_headers, test_form):
        response = await test_client.put(
            f"/api/forms/{test_form.id}", json={"bemerkungen": "Hund im Garten"}, headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["bemerkungen"] == "Hund im Garten"
        assert data["kundeNachname"] == "Musterfrau"
        assert data["specifications"]["breite"] == 5000
        assert data["updatedAt"] is not None

    @pytest.mark.asyncio
    async def test_switching_markise_off_clears_entries(self, test_client, auth_headers, complete_form):
        complete_form["specifications"]["markise"] = True
        complete_form["specifications"]["markiseData"] = [{"typ": "AUFGLAS", "modell": "W350", "breite": 4000}]
        response = await test_client.post("/api/forms", json=complete_form, headers=auth_headers)
        form_id = response.json()["id"]
        assert response.json()["markiseData"] == [{"typ": "AUFGLAS", "modell": "W350", "breite": 4000}]

        specs = dict(complete_form["specifications"], markise=False)
        specs.pop("markiseData")
        response = await test_client.put(f"/api/forms/{form_id}", json={"specifications": specs}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["markiseData"] is None
        form = await AufmassForm.get(id=form_id)
        assert form.markise_data is None
        assert build_template_data(response.json())["markisen"] == []

    @pytest.mark.asyncio
    async def test_update_without_specifications_keeps_markise(self, test_client, auth_headers, complete_form):
        complete_form["specifications"]["markise"] = True
        complete_form["specifications"]["markiseData"] = '[{"typ": "AUFGLAS", "modell": "W350", "breite": 4000}]'
        response = await test_client.post("/api/forms", json=complete_form, headers=auth_headers)
        form_id = response.json()["id"]

        response = await test_client.put(f"/api/forms/{form_id}", json={"bemerkungen": "neu"}, headers=auth_headers)
        assert response.json()["markiseData"] == [{"typ": "AUFGLAS", "modell": "W350", "breite": 4000}]

    @pytest.mark.asyncio
    async def test_malformed_payload_rejected(self, test_client, auth_headers, complete_form, test_form):
        bad_selection = dict(complete_form, productSelection="Glasdach")
        response = await test_client.post("/api/forms", json=bad_selection, headers=auth_headers)
        assert response.status_code == 400
        assert "productSelection" in response.json()["detail"]

        response = await test_client.put(
            f"/api/forms/{test_form.id}", json={"specifications": [1, 2]}, headers=auth_headers
        )
        assert response.status_code == 400

        response = await test_client.put(
            f"/api/forms/{test_form.id}", json={"weitereProdukte": {"id": "x"}}, headers=auth_headers
        )
        assert response.status_code == 400

        response = await test_client.put(
            f"/api/forms/{test_form.id}", json={"kundeNachname": {"x": 1}}, headers=auth_headers
        )
        assert response.status_code == 400
        assert await AufmassForm.all().count() == 1

    @pytest.mark.asyncio
    async def test_get_unknown_form(self, test_client, auth_headers):
        response = await test_client.get("/api/forms/9999", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_locked_form_only_editable_by_admin(self, test_client, auth_headers, admin_headers, test_form):
        test_form.status = "anzahlung"
        await test_form.save()

        response = await test_client.get(f"/api/forms/{test_form.id}", headers=auth_headers)
        assert response.json()["locked"] is True

        response = await test_client.put(f"/api/forms/{test_form.id}", json={"bemerkungen": "x"}, headers=auth_headers)
        assert response.status_code == 403

        response = await test_client.put(f"/api/forms/{test_form.id}", json={"bemerkungen": "x"}, headers=admin_headers)
        assert response.status_code == 200

class TestFormList:
    """Dashboard list with status filter and search."""

    @pytest.mark.asyncio
    async def test_list_filters(self, test_client, auth_headers, test_form):
        await AufmassForm.create(kunde_nachname="Schmidt", kundenlokation="Berlin", status="bestellt")
        await AufmassForm.create(kunde_nachname="Weg", status="papierkorb")
        await AufmassForm.create(kunde_nachname="Alt", status="draft")

        response = await test_client.get("/api/forms", headers=auth_headers)
        assert response.status_code == 200
        names = {f["kundeNachname"] for f in response.json()}
        assert names == {"Musterfrau", "Schmidt", "Alt"}

        response = await test_client.get("/api/forms?status=neu", headers=auth_headers)
        assert {f["kundeNachname"] for f in response.json()} == {"Musterfrau", "Alt"}

        response = await test_client.get("/api/forms?status=papierkorb", headers=auth_headers)
        assert [f["kundeNachname"] for f in response.json()] == ["Weg"]

        response = await test_client.get("/api/forms?search=berlin", headers=auth_headers)
        assert [f["kundeNachname"] for f in response.json()] == ["Schmidt"]

    @pytest.mark.asyncio
    async def test_summary_fields(self, test_client, auth_headers, test_form):
        response = await test_client.get("/api/forms", headers=auth_headers)
        summary = response.json()[0]

        assert summary["model"] == ["Premiumline"]
        assert summary["statusLabel"] == "Aufmaß Genommen"
        assert summary["statusColor"] == "#8b5cf6"
        assert summary["hasPdf"] is False
        assert summary["locked"] is False

class TestStatusChanges:
    """PATCH /forms/{id}/status and the status history."""

    @pytest.mark.asyncio
    async def test_forward_change(self, test_client, auth_headers, test_form):
        response = await test_client.patch(
            f"/api/forms/{test_form.id}/status",
            json={"status": "bestellt", "statusDate": "2024-06-01", "notes": "Ware bestellt"},
            headers=auth_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "bestellt"
        assert data["statusDate"] == "2024-06-01"
        assert data["locked"] is True

        history = await StatusHistory.filter(form_id=test_form.id).order_by("id")
        assert history[-1].status == "bestellt"
        assert history[-1].notes == "Ware bestellt"

    @pytest.mark.asyncio
    async def test_backward_change_needs_admin(self, test_client, auth_headers, admin_headers, test_form):
        test_form.status = "bestellt"
        await test_form.save()

        response = await test_client.patch(f"/api/forms/{test_form.id}/status", json={"status": "neu"}, headers=auth_headers)
        assert response.status_code == 400

        response = await test_client.patch(f"/api/forms/{test_form.id}/status", json={"status": "neu"}, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "neu"

    @pytest.mark.asyncio
    async def test_montage_geplant_stores_date_and_team(self, test_client, auth_headers, test_form):
        response = await test_client.patch(
            f"/api/forms/{test_form.id}/status", json={"status": "montage_geplant"}, headers=auth_headers
        )
        assert response.status_code == 400

        response = await test_client.patch(
            f"/api/forms/{test_form.id}/status",
            json={"status": "montage_geplant", "montageDatum": "2024-07-15", "montageteam": "SENOL"},
            headers=auth_headers
        )
        assert response.status_code == 200
        data = response.json()
        assert data["montageDatum"] == "2024-07-15"
        assert data["montageteam"] == "SENOL"

    @pytest.mark.asyncio
    async def test_abnahme_status_needs_protocol(self, test_client, auth_headers, test_form):
        response = await test_client.patch(
            f"/api/forms/{test_form.id}/status", json={"status": "abnahme"}, headers=auth_headers
        )
        assert response.status_code == 400

        abnahme = await Abnahme.create(form=test_form, ist_fertig=True)
        response = await test_client.patch(
            f"/api/forms/{test_form.id}/status", json={"status": "abnahme"}, headers=auth_headers
        )
        assert response.status_code == 400
        assert "Fotos" in response.json()["detail"]

        for name in ("a.jpg", "b.jpg"):
            await AbnahmeImage.create(abnahme=abnahme, file_name=name, file_type="image/jpeg", file_data=b"1")
        response = await test_client.patch(
            f"/api/forms/{test_form.id}/status", json={"status": "abnahme"}, headers=auth_headers
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown_status(self, test_client, auth_headers, test_form):
        response = await test_client.patch(
            f"/api/forms/{test_form.id}/status", json={"status": "fertig"}, headers=auth_headers
        )
        assert response.status_code == 400

class TestTrash:
    """Soft delete, restore and permanent delete."""

    @pytest.mark.asyncio
    async def test_delete_moves_to_trash_and_restore(self, test_client, auth_headers, test_form):
        response = await test_client.delete(f"/api/forms/{test_form.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["permanent"] is False

        form = await AufmassForm.get(id=test_form.id)
        assert form.status == "papierkorb"

        response = await test_client.post(f"/api/forms/{test_form.id}/restore", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["status"] == "neu"

        history = await StatusHistory.filter(form_id=test_form.id).order_by("id")
        assert history[-1].notes == "Wiederhergestellt"

    @pytest.mark.asyncio
    async def test_restore_requires_trash(self, test_client, auth_headers, test_form):
        response = await test_client.post(f"/api/forms/{test_form.id}/restore", headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_permanent_delete_is_admin_only(self, test_client, auth_headers, admin_headers, test_form, test_user):
        test_form.status = "papierkorb"
        await test_form.save()
        await FormImage.create(form=test_form, file_name="a.jpg", file_type="image/jpeg", file_data=b"1")
        await StatusHistory.create(form=test_form, status="papierkorb", changed_by=test_user)
        abnahme = await Abnahme.create(form=test_form)
        await AbnahmeImage.create(abnahme=abnahme, file_name="m.jpg", file_type="image/jpeg", file_data=b"2")

        response = await test_client.delete(f"/api/forms/{test_form.id}", headers=auth_headers)
        assert response.status_code == 403

        response = await test_client.delete(f"/api/forms/{test_form.id}", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["permanent"] is True

        assert await AufmassForm.filter(id=test_form.id).count() == 0
        assert await FormImage.all().count() == 0
        assert await StatusHistory.all().count() == 0
        assert await Abnahme.all().count() == 0
        assert await AbnahmeImage.all().count() == 0

class TestFormHelpers:
    """Validation and mail endpoints."""

    @pytest.mark.asyncio
    async def test_validate_unsaved_payload(self, test_client, auth_headers, complete_form):
        response = await test_client.post("/api/forms/validate", json=complete_form, headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["complete"] is True

    @pytest.mark.asyncio
    async def test_validate_saved_form_counts_images(self, test_client, auth_headers, test_form):
        response = await test_client.get(f"/api/forms/{test_form.id}/validate", headers=auth_headers)
        steps = response.json()["steps"]
        assert [s["canProceed"] for s in steps] == [True, True, True, True, False]

        for name in ("a.jpg", "b.jpg"):
            await FormImage.create(form=test_form, file_name=name, file_type="image/jpeg", file_data=b"1")
        response = await test_client.get(f"/api/forms/{test_form.id}/validate", headers=auth_headers)
        assert response.json()["complete"] is True

    @pytest.mark.asyncio
    async def test_mailto(self, test_client, auth_headers, test_form):
        response = await test_client.get(f"/api/forms/{test_form.id}/mailto", headers=auth_headers)
        assert response.json() == {"mailto": "mailto:erika@example.com"}

        test_form.status = "bestellt"
        await test_form.save()
        response = await test_client.get(f"/api/forms/{test_form.id}/mailto", headers=auth_headers)
        assert response.json()["mailto"].startswith("mailto:erika@example.com?subject=")
