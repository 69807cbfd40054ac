"""Tests for the gear and location catalog."""

import pytest

from photo_pipeline.core.catalog import (
    GEAR_PROFILES,
    LOCATION_PRESETS,
    ProfileKind,
    check_gear,
    get_location_preset,
    get_profile,
)


class TestDeviceProfile:
    """Tests for DeviceProfile lookups."""

    def test_every_kind_has_a_profile(self):
        assert set(GEAR_PROFILES) == set(ProfileKind)

    def test_every_make_has_models_and_lenses(self):
        for profile in GEAR_PROFILES.values():
            for make in profile.makes:
                assert profile.models_for(make), make
                assert profile.lenses_for(make), make

    def test_camera_lenses_are_per_make(self):
        camera = get_profile("camera")
        assert "RF 24-70mm f/2.8L" in camera.lenses_for("Canon")
        assert "RF 24-70mm f/2.8L" not in camera.lenses_for("Nikon")

    def test_shared_lenses_only_for_known_makes(self):
        phone = get_profile(ProfileKind.PHONE)
        assert phone.lenses_for("Apple") == phone.lenses
        assert phone.lenses_for("Canon") == ()

    def test_make_for_model(self):
        camera = get_profile("camera")
        assert camera.make_for(model="D850") == "Nikon"
        assert camera.make_for(model="D850", lens="FE 50mm f/1.8") is None
        assert camera.make_for(model="unknown") is None


class TestLocationPresets:
    def test_known_preset(self):
        preset = get_location_preset("kyiv")
        assert preset.country == "Ukraine"
        assert -90 <= preset.latitude <= 90

    def test_unknown_preset(self):
        with pytest.raises(KeyError):
            get_location_preset("atlantis")

    def test_ids_match_keys(self):
        for key, preset in LOCATION_PRESETS.items():
            assert key == preset.id


class TestCheckGear:
    def test_empty_values_pass(self):
        check_gear(get_profile("camera"))

    def test_lens_of_other_make_rejected(self):
        with pytest.raises(ValueError, match="does not belong"):
            check_gear(get_profile("camera"), make="Sony", lens="RF 35mm f/1.8")

    def test_model_without_make_must_exist(self):
        with pytest.raises(ValueError):
            check_gear(get_profile("drone"), model="EOS R5")
