"""
Tests for the Lambda entry point and Vault secret loading
"""

import json
import os
from unittest.mock import patch

from api_relay.main import _apply_secrets, _load_vault_secrets, lambda_handler


class TestApplySecrets:
    @patch.dict("os.environ", {}, clear=True)
    def test_flat_json(self):
        count = _apply_secrets(json.dumps({"RELAY_API_KEYS": "k1,k2", "PORT": 8080}))

        assert count == 2
        assert os.environ["RELAY_API_KEYS"] == "k1,k2"
        assert os.environ["PORT"] == "8080"

    @patch.dict("os.environ", {}, clear=True)
    def test_vault_kv_v2_nesting(self):
        content = json.dumps({"relay": {"data": {"RELAY_API_KEYS": "secret"}}})

        assert _apply_secrets(content) == 1
        assert os.environ["RELAY_API_KEYS"] == "secret"

    @patch.dict("os.environ", {}, clear=True)
    def test_key_value_lines(self):
        count = _apply_secrets("RELAY_API_KEYS = k1\nnot a pair\nSKIP_AUTH=true\n")

        assert count == 2
        assert os.environ["RELAY_API_KEYS"] == "k1"
        assert os.environ["SKIP_AUTH"] == "true"

    @patch.dict("os.environ", {}, clear=True)
    def test_non_object_json(self):
        assert _apply_secrets("[1, 2]") == 0


class TestLoadVaultSecrets:
    def test_loads_and_removes_file(self, tmp_path):
        secrets_file = tmp_path / "vault_secrets"
        secrets_file.write_text(json.dumps({"RELAY_API_KEYS": "from-vault"}))

        with patch.dict(
            "os.environ", {"VAULT_SECRET_FILE": str(secrets_file)}, clear=True
        ):
            assert _load_vault_secrets() is True
            assert os.environ["RELAY_API_KEYS"] == "from-vault"

        assert not secrets_file.exists()

    @patch("api_relay.main._find_secrets_file")
    def test_no_file(self, mock_find):
        mock_find.return_value = None

        assert _load_vault_secrets() is False


class TestEntryPoint:
    @patch("api_relay.main._lambda_handler")
    def test_delegates_to_handler(self, mock_handler):
        mock_handler.return_value = {"statusCode": 200}
        event = {"httpMethod": "OPTIONS"}

        assert lambda_handler(event, None) == {"statusCode": 200}
        mock_handler.assert_called_once_with(event, None)
