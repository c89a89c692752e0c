"""Tests for the command-line entry points."""

import json
from contextlib import contextmanager
from unittest.mock import MagicMock, patch

import pytest

import audit_schema
import backup_collections
import clean_directus
import configure_fields
import fix_permissions
import import_content
import migrate_schema
import translate_content
from directus_ops.directus_client import DirectusRESTClient

from conftest import FakeConnection, columns_of


@pytest.fixture
def client():
    mock = MagicMock(spec=DirectusRESTClient)
    mock.base_url = "http://localhost:8055"
    return mock


def fake_connect(conn):
    @contextmanager
    def _connect(settings=None):
        yield conn

    return _connect


class TestCleanDirectus:
    def test_clean_with_yes_flag(self, client, capsys):
        with patch("clean_directus.connect_client", return_value=client), \
                patch("clean_directus.clean_collections", return_value={"umkm_lokal": 3}) as mock_clean:
            exit_code = clean_directus.main(["-c", "umkm_lokal", "--keep-translations", "--yes"])

        assert exit_code == 0
        mock_clean.assert_called_once_with(
            client,
            ["umkm_lokal"],
            include_translations=False,
            batch_size=100,
            verbose=False,
        )
        assert "Total items deleted: 3" in capsys.readouterr().out

    def test_cancelled_without_confirmation(self):
        with patch("builtins.input", return_value="no"), \
                patch("clean_directus.connect_client") as mock_connect:
            exit_code = clean_directus.main([])

        assert exit_code == 0
        mock_connect.assert_not_called()

    def test_drop_collection(self, client):
        client.list_collections.return_value = [{"collection": "old_locations"}]
        with patch("clean_directus.connect_client", return_value=client):
            exit_code = clean_directus.main(["--drop-collection", "old_locations", "-y"])

        assert exit_code == 0
        client.delete_collection.assert_called_once_with("old_locations")

    def test_authentication_failure(self):
        with patch("clean_directus.connect_client", return_value=None):
            assert clean_directus.main(["-y"]) == 1


class TestBackupCollections:
    def test_backup_with_translations(self, client, tmp_path):
        client.list_all_items.return_value = [{"id": 1, "slug": "kuta"}]
        with patch("backup_collections.connect_client", return_value=client):
            exit_code = backup_collections.main(["-c", "map_locations", "-o", str(tmp_path)])

        assert exit_code == 0
        names = sorted(path.name for path in tmp_path.iterdir())
        assert len(names) == 2
        assert any(name.startswith("backup-map_locations-") for name in names)
        assert any(name.startswith("backup-map_locations_translations-") for name in names)

    def test_csv_export(self, client, tmp_path):
        client.list_all_items.return_value = [{"id": 1, "slug": "kuta"}]
        target = tmp_path / "map.csv"
        with patch("backup_collections.connect_client", return_value=client):
            exit_code = backup_collections.main(["-c", "map_locations", "--csv", str(target)])

        assert exit_code == 0
        assert target.read_text(encoding="utf-8").splitlines() == ["id,slug", "1,kuta"]

    def test_csv_needs_single_collection(self):
        with patch("backup_collections.connect_client") as mock_connect:
            assert backup_collections.main(["--csv", "out.csv"]) == 1
        mock_connect.assert_not_called()


class TestImportContent:
    def test_import_yaml_file(self, client, tmp_path):
        data = tmp_path / "articles.yaml"
        data.write_text("- slug: kuliner\n  title_id: Kuliner\n  title_en: Culinary\n", encoding="utf-8")
        client.find_first_by_field.return_value = None
        client.create_item.return_value = {"id": 5}
        client.list_items.return_value = []

        with patch("import_content.connect_client", return_value=client):
            exit_code = import_content.main(["trending_articles", str(data)])

        assert exit_code == 0
        client.create_item.assert_any_call("trending_articles", {"slug": "kuliner", "title": "Kuliner"})

    def test_translations_collection_needs_restore(self, tmp_path):
        data = tmp_path / "rows.json"
        data.write_text("[]", encoding="utf-8")

        assert import_content.main(["trending_articles_translations", str(data)]) == 1

    def test_restore_without_backup(self, tmp_path, monkeypatch):
        monkeypatch.setenv("BACKUP_DIR", str(tmp_path))

        assert import_content.main(["map_locations", "--restore"]) == 1

    def test_unreadable_file(self, tmp_path):
        data = tmp_path / "broken.json"
        data.write_text("{", encoding="utf-8")

        with patch("import_content.connect_client") as mock_connect:
            assert import_content.main(["umkm_lokal", str(data)]) == 1
        mock_connect.assert_not_called()


class TestAuditSchema:
    def test_audit_reports_issues(self, client, capsys):
        client.server_info.return_value = {"version": "11.0.0"}
        client.ping.return_value = True
        client.list_fields.return_value = [{"field": "id", "schema": {"data_type": "integer"}}]
        client.count_items.return_value = 0

        with patch("audit_schema.connect_client", return_value=client):
            exit_code = audit_schema.main(["-c", "map_locations"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Missing 'slug' field" in out
        assert "TOTAL" in out


class TestMigrateSchema:
    def test_add_column_with_flags_after_subcommand(self, capsys):
        conn = FakeConnection()
        conn.on("information_schema.columns", columns_of({"map_locations": ["id"]}))

        with patch("migrate_schema.connect", fake_connect(conn)):
            exit_code = migrate_schema.main(
                ["add-column", "map_locations", "subcategory", "VARCHAR(100)", "--register", "--db-host", "db"]
            )

        assert exit_code == 0
        assert 'ALTER TABLE "map_locations" ADD COLUMN "subcategory" VARCHAR(100)' in conn.statements
        assert conn.find("INSERT INTO directus_fields")
        assert "map_locations.subcategory added" in capsys.readouterr().out

    def test_destructive_command_needs_confirmation(self):
        with patch("builtins.input", return_value="n"), \
                patch("migrate_schema.connect") as mock_connect:
            exit_code = migrate_schema.main(["id-to-integer"])

        assert exit_code == 0
        mock_connect.assert_not_called()

    def test_aborted_migration(self, capsys):
        conn = FakeConnection()
        conn.on("information_schema.columns", columns_of({"map_locations": ["id", "slug"]}))

        with patch("migrate_schema.connect", fake_connect(conn)):
            exit_code = migrate_schema.main(["id-to-integer", "--yes"])

        assert exit_code == 1
        assert "Migration aborted" in capsys.readouterr().err

    def test_field_sort(self):
        conn = FakeConnection()
        conn.on("SET sort", rowcount=1)

        with patch("migrate_schema.connect", fake_connect(conn)):
            exit_code = migrate_schema.main(["field-sort", "umkm_lokal", "slug=1", "name=2"])

        assert exit_code == 0
        assert [params for _, params in conn.executed] == [
            (1, "umkm_lokal", "slug"),
            (2, "umkm_lokal", "name"),
        ]

    def test_m2o_relation(self, capsys):
        conn = FakeConnection()

        with patch("migrate_schema.connect", fake_connect(conn)):
            exit_code = migrate_schema.main(["m2o", "agenda_events", "map_location_id", "map_locations"])

        assert exit_code == 0
        (_, params), = conn.find("INSERT INTO directus_relations")
        assert params == ("agenda_events", "map_location_id", "map_locations")
        assert "agenda_events.map_location_id -> map_locations registered" in capsys.readouterr().out

    def test_field_sort_rejects_bad_pairs(self):
        conn = FakeConnection()

        with patch("migrate_schema.connect", fake_connect(conn)):
            assert migrate_schema.main(["field-sort", "umkm_lokal", "slug"]) == 1


class TestFixPermissions:
    def test_db_only_flags_need_db(self):
        assert fix_permissions.main(["--fix-null"]) == 1

    def test_api_mode_creates_permissions(self, client):
        client.list_policies.return_value = [{"id": "p-admin", "name": "Administrator", "admin_access": True}]
        client.list_permissions.return_value = []

        with patch("fix_permissions.connect_client", return_value=client):
            exit_code = fix_permissions.main(["-c", "map_locations"])

        assert exit_code == 0
        assert client.create_permission.call_count == 4
        assert client.create_permission.call_args.args[0]["policy"] == "p-admin"

    def test_db_mode(self):
        conn = FakeConnection()
        conn.on("FROM directus_policies WHERE admin_access", [{"id": "p-admin"}])

        with patch("fix_permissions.connect", fake_connect(conn)):
            exit_code = fix_permissions.main(["--db", "-c", "umkm_lokal"])

        assert exit_code == 0
        assert len(conn.find("INSERT INTO directus_permissions")) == 4


class TestConfigureFields:
    def test_layout_through_api(self, client, tmp_path):
        layout = tmp_path / "layout.yaml"
        layout.write_text("fields:\n  - collections: [umkm_lokal]\n    field: phone\n    width: half\n", encoding="utf-8")

        with patch("configure_fields.connect_client", return_value=client):
            exit_code = configure_fields.main(["layout", str(layout)])

        assert exit_code == 0
        client.update_field.assert_called_once_with("umkm_lokal", "phone", {"meta": {"width": "half"}})

    def test_optional_defaults_to_contact_fields(self, client):
        with patch("configure_fields.connect_client", return_value=client):
            exit_code = configure_fields.main(["optional", "map_locations"])

        assert exit_code == 0
        assert client.update_field.call_count == len(configure_fields.fields.CONTACT_FIELDS)


class TestTranslateContent:
    def test_unreachable_translator(self):
        with patch("translate_content.LibreTranslateClient.is_available", return_value=False), \
                patch("translate_content.connect_client") as mock_connect:
            exit_code = translate_content.main(["missing", "--translator-url", "http://nowhere:5000"])

        assert exit_code == 1
        mock_connect.assert_not_called()

    def test_event_from_file(self, client, tmp_path):
        body = tmp_path / "body.json"
        body.write_text(
            json.dumps({"collection": "agenda_events", "key": 4, "payload": {"title": "Pawai"}}),
            encoding="utf-8",
        )
        client.list_items.return_value = []

        with patch("translate_content.LibreTranslateClient.is_available", return_value=True), \
                patch("translate_content.LibreTranslateClient.translate", return_value="Parade"), \
                patch("translate_content.connect_client", return_value=client):
            exit_code = translate_content.main(["event", str(body)])

        assert exit_code == 0
        client.create_item.assert_called_once_with(
            "agenda_events_translations",
            {"agenda_events_id": 4, "languages_code": "en-US", "title": "Parade"},
        )

    def test_flows_skip_translator_check(self, client):
        client.list_flows.return_value = [{"id": "f1", "name": "Auto-Translate umkm_lokal"}]

        with patch("translate_content.LibreTranslateClient.is_available") as mock_available, \
                patch("translate_content.connect_client", return_value=client):
            exit_code = translate_content.main(
                ["flows", "-c", "umkm_lokal", "--webhook-url", "http://127.0.0.1:8001/hook"]
            )

        assert exit_code == 0
        mock_available.assert_not_called()
