"""Tests for per-invocation credential preparation."""

import os
import subprocess

import pytest

from conftest import posix_only
from credentials import (
    PASSWORD_ENV,
    USERNAME_ENV,
    PreparedAuth,
    SshCommandAuth,
    TokenAuth,
    UserPasswordAuth,
    auth_from_dict,
    merge_auth_env,
    prepare_auth,
)
from models import CredentialError, InvalidArgumentError


class TestPrepareAuth:
    """Tests for prepare_auth."""

    def test_token_defaults_username(self):
        with prepare_auth(TokenAuth(token="s3cret")) as prepared:
            assert prepared.env[USERNAME_ENV] == "git"
            assert prepared.env[PASSWORD_ENV] == "s3cret"
            assert prepared.env["GIT_TERMINAL_PROMPT"] == "0"
            assert "GIT_ASKPASS" in prepared.env
            assert len(prepared.cleanup) == 1

    def test_token_with_username(self):
        with prepare_auth(TokenAuth(token="t", username="alice")) as prepared:
            assert prepared.env[USERNAME_ENV] == "alice"

    def test_user_password(self):
        with prepare_auth(UserPasswordAuth(username="bob", password="hunter2")) as prepared:
            assert prepared.env[USERNAME_ENV] == "bob"
            assert prepared.env[PASSWORD_ENV] == "hunter2"

    def test_secret_not_written_to_helper(self):
        prepared = prepare_auth(UserPasswordAuth(username="bob", password="top-secret-value"))
        try:
            helper = prepared.cleanup[0]
            assert helper.exists()
            assert str(helper) == prepared.env["GIT_ASKPASS"]
            content = helper.read_text()
            assert "top-secret-value" not in content
            assert "bob" not in content
        finally:
            prepared.release()

    def test_custom_prefix(self):
        with prepare_auth(TokenAuth(token="t"), prefix="unit-test-askpass-") as prepared:
            assert prepared.cleanup[0].name.startswith("unit-test-askpass-")

    def test_helpers_are_unique(self):
        first = prepare_auth(TokenAuth(token="a"))
        second = prepare_auth(TokenAuth(token="b"))
        try:
            assert first.cleanup[0] != second.cleanup[0]
        finally:
            first.release()
            second.release()

    def test_null_byte_in_secret_rejected(self):
        with pytest.raises(CredentialError):
            prepare_auth(TokenAuth(token="bad\0token"))

    def test_null_byte_in_username_rejected(self):
        with pytest.raises(InvalidArgumentError):
            prepare_auth(UserPasswordAuth(username="a\0b", password="p"))

    def test_ssh_command(self):
        prepared = prepare_auth(SshCommandAuth(command="ssh -i ~/.ssh/id_test"))

        assert prepared.env == {"GIT_SSH_COMMAND": "ssh -i ~/.ssh/id_test"}
        assert prepared.cleanup == []

    def test_blank_ssh_command_rejected(self):
        with pytest.raises(CredentialError):
            prepare_auth(SshCommandAuth(command="   "))

    def test_unknown_descriptor(self):
        with pytest.raises(TypeError):
            prepare_auth("token")

    @posix_only
    def test_helper_answers_prompts(self):
        prepared = prepare_auth(UserPasswordAuth(username="carol", password="pw"))
        try:
            helper = prepared.env["GIT_ASKPASS"]
            env = merge_auth_env(dict(os.environ), prepared.env)
            user = subprocess.run([helper, "Username for 'https://example.com': "],
                                  env=env, capture_output=True, text=True)
            password = subprocess.run([helper, "Password for 'https://carol@example.com': "],
                                      env=env, capture_output=True, text=True)
            assert user.stdout.strip() == "carol"
            assert password.stdout.strip() == "pw"
        finally:
            prepared.release()


class TestPreparedAuth:
    """Tests for PreparedAuth cleanup."""

    def test_release_deletes_helper(self):
        prepared = prepare_auth(TokenAuth(token="t"))
        helper = prepared.cleanup[0]

        prepared.release()

        assert not helper.exists()
        assert prepared.released is True

    def test_release_only_once(self, temp_dir):
        helper = temp_dir / "helper"
        helper.write_text("x")
        prepared = PreparedAuth(cleanup=[helper])
        prepared.release()

        # A file re-created at the same path must survive a second release.
        helper.write_text("y")
        prepared.release()

        assert helper.exists()

    def test_release_tolerates_missing_file(self, temp_dir):
        prepared = PreparedAuth(cleanup=[temp_dir / "never-created"])
        prepared.release()
        assert prepared.released

    def test_context_manager_releases(self):
        with prepare_auth(TokenAuth(token="t")) as prepared:
            helper = prepared.cleanup[0]
        assert not helper.exists()


class TestAuthFromDict:
    """Tests for auth_from_dict."""

    def test_none(self):
        assert auth_from_dict(None) is None

    def test_token(self):
        assert auth_from_dict({"kind": "token", "token": "t"}) == TokenAuth(token="t")

    def test_token_with_username(self):
        auth = auth_from_dict({"kind": "token", "token": "t", "username": "me"})
        assert auth == TokenAuth(token="t", username="me")

    def test_user_password(self):
        auth = auth_from_dict({"kind": "user_password", "username": "u", "password": "p"})
        assert auth == UserPasswordAuth(username="u", password="p")

    def test_ssh_command(self):
        assert auth_from_dict({"kind": "ssh_command", "command": "ssh"}) == SshCommandAuth(command="ssh")

    def test_missing_field(self):
        with pytest.raises(CredentialError, match="password"):
            auth_from_dict({"kind": "user_password", "username": "u"})

    def test_unknown_kind(self):
        with pytest.raises(CredentialError, match="unknown auth kind"):
            auth_from_dict({"kind": "kerberos"})


class TestMergeAuthEnv:
    """Tests for merge_auth_env."""

    def test_overlay_without_mutation(self):
        base = {"PATH": "/bin", "GIT_TERMINAL_PROMPT": "1"}
        extra = {"GIT_TERMINAL_PROMPT": "0"}

        merged = merge_auth_env(base, extra)

        assert merged == {"PATH": "/bin", "GIT_TERMINAL_PROMPT": "0"}
        assert base["GIT_TERMINAL_PROMPT"] == "1"
