from __future__ import annotations

import pytest

from mortality_explorer.services.access import EXTENDED_TIME_PERIODS, FeatureAccess


def test_public_tier_has_no_extended_access():
    access = FeatureAccess()
    assert not access.has_extended_access
    assert not access.can(EXTENDED_TIME_PERIODS)


@pytest.mark.parametrize("tier", ["registered", "pro"])
def test_higher_tiers_have_extended_access(tier):
    assert FeatureAccess(tier).has_extended_access


def test_unknown_feature_is_denied():
    assert not FeatureAccess("pro").can("TIME_TRAVEL")


def test_unknown_tier_rejected():
    with pytest.raises(ValueError):
        FeatureAccess("admin")
