"""Tests for applying merged auth options to an identity."""

import pytest

from access.models import Identity
from tree.authorizer import ANONYMOUS_ACCOUNT, AccessDenied, authorize, is_authorized
from tree.models import AuthOptions

ADMIN = Identity(account_key="admins", username="alice")


class TestAuthorize:
    @pytest.mark.parametrize("auth_list", [None, []])
    def test_unrestricted(self, auth_list):
        auth = AuthOptions(auth_list=auth_list)
        assert is_authorized(auth, None)
        assert is_authorized(auth, ADMIN)

    def test_listed_account_allowed(self):
        authorize(AuthOptions(auth_list=["admins"]), ADMIN)

    def test_unlisted_account_denied_with_configured_status(self):
        with pytest.raises(AccessDenied) as exc_info:
            authorize(AuthOptions(auth_list=["editors"], auth_error=404), ADMIN)
        assert exc_info.value.status_code == 404
        assert exc_info.value.account_key == "admins"

    def test_anonymous_denied_by_default_status(self):
        with pytest.raises(AccessDenied) as exc_info:
            authorize(AuthOptions(auth_list=["admins"]), None)
        assert exc_info.value.status_code == 403
        assert exc_info.value.account_key == ANONYMOUS_ACCOUNT

    def test_anonymous_marker_can_be_listed(self):
        assert is_authorized(AuthOptions(auth_list=["admins", ANONYMOUS_ACCOUNT]), None)
