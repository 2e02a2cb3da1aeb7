"""
Tests for the maintenance scripts in ``backend/scripts``.
"""

import importlib.util
import json
from pathlib import Path

import pytest
import yaml
from sqlalchemy import select

from labsite.models.admin import AdminUser
from labsite.models.stats import HTBStats


SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "scripts"


def load_script(name):
    spec = importlib.util.spec_from_file_location(f"labsite_script_{name}", SCRIPTS_DIR / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestCreateAdmin:
    @pytest.fixture
    def script(self):
        return load_script("create_admin")

    async def test_creates_admin_and_seeds_stats(self, script, async_session):
        created = await script.create_admin("jerry", "Str0ng!Passw0rd")

        assert created is True
        usernames = await async_session.execute(select(AdminUser.username))
        assert list(usernames.scalars()) == ["jerry"]
        pwned = await async_session.scalar(select(HTBStats.machines_pwned))
        assert pwned == 127

    async def test_second_run_is_a_no_op(self, script, async_session):
        await script.create_admin("jerry", "Str0ng!Passw0rd")

        assert await script.create_admin("jerry", "Str0ng!Passw0rd") is False

    async def test_rejects_weak_password(self, script, async_session):
        with pytest.raises(ValueError, match="special character"):
            await script.create_admin("jerry", "Weakpass1")

    async def test_rejects_bad_username(self, script, async_session):
        with pytest.raises(ValueError):
            await script.create_admin("j", "Str0ng!Passw0rd")

    def test_parse_args(self, script):
        args = script.parse_args(["--username", "jerry"])

        assert args.username == "jerry"
        assert args.password is None


def test_export_openapi(tmp_path):
    script = load_script("export_openapi")

    schema = script.export_openapi(tmp_path)

    assert "/api/v1/writeups/verify-otp" in schema["paths"]
    assert json.loads((tmp_path / "openapi.json").read_text()) == schema
    assert yaml.safe_load((tmp_path / "openapi.yaml").read_text())["info"]["title"] == schema["info"]["title"]
