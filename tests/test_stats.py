"""Tests for the stat manager: modifiers, derived stats, clamping, resources."""

import logging

import pytest

from engine.stats import StatManager, calculate_ability_modifier


class TestAbilityModifier:
    """Tests for calculate_ability_modifier()."""

    @pytest.mark.parametrize(
        "score,expected",
        [(1, -5), (9, -1), (10, 0), (11, 0), (14, 2), (16, 3), (20, 5)],
    )
    def test_modifier(self, score, expected):
        assert calculate_ability_modifier(score) == expected


class TestDerivedStats:
    """Derived stats come from attributes."""

    def test_defaults(self):
        stats = StatManager()
        assert stats.get("strength") == 10
        assert stats.get("attack") == 0
        assert stats.get("maxHealth") == 10
        assert stats.get("hitChance") == 75

    def test_attribute_bonuses(self):
        stats = StatManager({"strength": 14, "constitution": 14, "agility": 14})
        final = stats.get_final()
        assert final["attack"] == 2
        assert final["defense"] == 2
        assert final["hitChance"] == 79
        assert final["critChance"] == 6
        assert final["dodge"] == 2
        assert final["blockChance"] == 1
        assert final["initiative"] == 2
        assert final["armorClass"] == 12
        assert final["maxHealth"] == 14
        assert final["maxStamina"] == 20
        assert final["healthRegen"] == 1
        assert final["staminaRegen"] == 3

    def test_defense_feeds_armor_class_and_reduction(self):
        stats = StatManager({"defense": 30})
        assert stats.get("armorClass") == 12
        assert stats.get("damageReduction") == 10

    def test_mana_from_intelligence_and_wisdom(self):
        stats = StatManager({"intelligence": 14, "wisdom": 12, "maxMana": 10})
        assert stats.get("maxMana") == 10 + 8 + 2

    def test_clamps(self):
        stats = StatManager({
            "agility": 40,
            "critChance": 60,
            "critPower": 50,
            "fireResistance": 150,
            "iceResistance": -300,
        })
        final = stats.get_final()
        assert final["hitChance"] == 95
        assert final["critChance"] == 50
        assert final["critPower"] == 100
        assert final["dodge"] == 15
        assert final["fireResistance"] == 100
        assert final["iceResistance"] == -100

    def test_attributes_never_below_one(self):
        stats = StatManager()
        stats.add_modifier("curse", {"strength": -50})
        assert stats.get("strength") == 1


class TestModifiers:
    """Adding, replacing and removing modifiers."""

    def test_add_returns_true_when_new(self):
        stats = StatManager()
        assert stats.add_modifier("ring", {"strength": 2}) is True
        assert stats.add_modifier("ring", {"strength": 5}) is False

    def test_replace_not_stack(self):
        stats = StatManager({"strength": 12})
        stats.add_modifier("ring", {"strength": 2, "attack": 1})
        stats.add_modifier("ring", {"strength": 5})

        only_b = StatManager({"strength": 12})
        only_b.add_modifier("ring", {"strength": 5})
        assert stats.get_final() == only_b.get_final()

    def test_removal_reversible(self):
        stats = StatManager({"strength": 13, "agility": 11})
        before = stats.get_final()
        stats.add_modifier("potion", {"attack": 3, "agility": 4, "maxHealth": 10})
        assert stats.get_final() != before
        assert stats.remove_modifier("potion") is True
        assert stats.get_final() == before

    def test_remove_missing(self):
        assert StatManager().remove_modifier("nothing") is False

    def test_creates_absent_stats(self):
        stats = StatManager()
        stats.add_modifier("charm", {"luck": 3})
        assert stats.get("luck") == 3

    def test_invalid_source(self, caplog):
        stats = StatManager()
        with caplog.at_level(logging.ERROR):
            assert stats.add_modifier("", {"strength": 2}) is False
            assert stats.add_modifier(None, {"strength": 2}) is False
        assert "non-empty string" in caplog.text
        assert stats.get_modifiers() == []

    def test_non_numeric_delta_skipped(self, caplog):
        stats = StatManager()
        with caplog.at_level(logging.WARNING):
            stats.add_modifier("odd", {"strength": "lots", "attack": 2})
        assert stats.get("strength") == 10
        assert stats.get("attack") == 2
        assert "non-numeric" in caplog.text

    def test_remove_by_prefix(self):
        stats = StatManager()
        stats.add_modifier("equipment_right_hand", {"attack": 2})
        stats.add_modifier("equipment_feet", {"defense": 1})
        stats.add_modifier("blessing", {"attack": 1})
        assert stats.remove_modifiers_by_prefix("equipment_") == 2
        assert stats.has_modifier("blessing")
        assert not stats.has_modifier("equipment_feet")

    def test_get_modifiers_in_order(self):
        stats = StatManager()
        stats.add_modifier("a", {"attack": 1})
        stats.add_modifier("b", {"defense": 2})
        assert stats.get_modifiers() == [
            {"source": "a", "stats": {"attack": 1}},
            {"source": "b", "stats": {"defense": 2}},
        ]

    def test_clear_modifiers(self):
        stats = StatManager()
        stats.add_modifier("a", {"attack": 1})
        stats.add_modifier("b", {"defense": 2})
        assert stats.clear_modifiers() == 2
        assert stats.get("attack") == 0

    def test_set_base_keeps_modifiers(self):
        stats = StatManager({"strength": 10})
        stats.add_modifier("ring", {"strength": 2})
        stats.set_base({"strength": 15})
        assert stats.get("strength") == 17
        assert stats.get_base()["strength"] == 15


class TestResources:
    """Current health, mana and stamina."""

    def test_start_full(self):
        stats = StatManager({"maxHealth": 50, "maxStamina": 20})
        assert stats.get_resource("health") == 50
        assert stats.get_resource("stamina") == 20

    def test_base_resource_seeds_current_value(self):
        stats = StatManager({"maxHealth": 100, "health": 40})
        assert stats.get("maxHealth") == 100
        assert stats.get_resource("health") == 40

    def test_resources_argument(self):
        stats = StatManager({"maxHealth": 100}, resources={"health": 25})
        assert stats.get_resource("health") == 25

    def test_flat_health_raises_maximum_only(self):
        stats = StatManager({"maxHealth": 50})
        stats.add_modifier("amulet", {"health": 10})
        assert stats.get("maxHealth") == 60
        assert stats.get_resource("health") == 50

    def test_clamped_on_set(self):
        stats = StatManager({"maxHealth": 50})
        assert stats.set_resource("health", 500) == 50
        assert stats.set_resource("health", -5) == 0

    def test_modify_returns_new_value(self):
        stats = StatManager({"maxHealth": 50})
        assert stats.modify_resource("health", -12) == 38
        assert stats.modify_resource("health", 100) == 50

    def test_reclamped_when_maximum_drops(self):
        stats = StatManager({"maxHealth": 50})
        stats.add_modifier("curse", {"maxHealth": -30})
        assert stats.get_resource("health") == 20
        stats.remove_modifier("curse")
        assert stats.get_resource("health") == 20

    def test_clamp_holds_for_any_sequence(self):
        stats = StatManager({"maxHealth": 40, "maxMana": 20})
        changes = [
            ("a", {"maxHealth": -35}),
            ("b", {"mana": 15}),
            ("a", {"constitution": -8}),
            ("c", {"maxMana": -100}),
            ("b", {"health": 60}),
        ]
        for source, deltas in changes:
            stats.add_modifier(source, deltas)
            stats.restore_resources()
            stats.modify_resource("health", -7)
            for name, max_key in (("health", "maxHealth"), ("mana", "maxMana")):
                value = stats.get_resource(name)
                assert 0 <= value <= stats.get_final()[max_key]

    def test_restore(self):
        stats = StatManager({"maxHealth": 30})
        stats.set_resource("health", 1)
        stats.restore_resources()
        assert stats.get_resources()["health"] == 30

    def test_unknown_resource(self):
        with pytest.raises(KeyError):
            StatManager().get_resource("rage")

    def test_snapshot_merges_resources(self):
        snapshot = StatManager({"maxHealth": 30}).snapshot()
        assert snapshot["health"] == 30
        assert snapshot["maxHealth"] == 30
