"""Tests for enemy creation and enemy ability choice."""

import logging

from engine.abilities import CooldownTable
from engine.bestiary import choose_enemy_ability, create_encounter, create_enemy
from engine.content import default_catalog
from models.characters import CharacterKind


class TestCreateEnemy:
    """Scaling and setup of bestiary entries."""

    def test_goblin_level_one(self):
        goblin = create_enemy("goblin", level=1)
        assert goblin.kind == CharacterKind.NPC
        assert goblin.template_id == "goblin"
        assert goblin.max_health == 20
        assert goblin.health == 20
        assert goblin.exp_reward == 15
        assert goblin.gold_reward == 6
        assert goblin.natural_weapon.name == "Claws"

    def test_scales_with_level(self):
        goblin = create_enemy("goblin", level=3)
        assert goblin.level == 3
        assert goblin.max_health == 60
        assert goblin.exp_reward == 45
        assert goblin.gold_reward == 18

    def test_constitution_adds_health(self):
        assert create_enemy("wolf", level=2).max_health == 32

    def test_below_base_level(self):
        wolf = create_enemy("wolf", level=1)
        assert wolf.max_health == 15 + 2
        assert wolf.exp_reward == 12

    def test_armor_class_does_not_scale(self):
        assert create_enemy("skeleton", level=3).stats.get("armorClass") == 13
        assert create_enemy("skeleton", level=9).stats.get("armorClass") == 13

    def test_equipment(self):
        skeleton = create_enemy("skeleton", level=3)
        assert skeleton.equipment.right_hand.name == "Short Sword"
        assert skeleton.stats.get("attack") == 7 + 1 + 2

    def test_unknown(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert create_enemy("dragon") is None
        assert "dragon" in caplog.text

    def test_fresh_instances(self):
        first = create_enemy("goblin")
        second = create_enemy("goblin")
        first.take_damage(5)
        assert first.id != second.id
        assert second.health == 20


class TestCreateEncounter:

    def test_skips_unknown_ids(self):
        enemies = create_encounter(["goblin", "dragon", "wolf"], level=2)
        assert [enemy.name for enemy in enemies] == ["Goblin", "Wolf"]
        assert all(enemy.level == 2 for enemy in enemies)


class TestChooseEnemyAbility:
    """Enemies pick the first usable ability they know."""

    def test_picks_usable_ability(self):
        wolf = create_enemy("wolf", level=2)
        assert choose_enemy_ability(wolf, default_catalog(), CooldownTable()) == "savage_bite"
        assert wolf.selected_ability == "savage_bite"

    def test_none_while_on_cooldown(self):
        catalog = default_catalog()
        cooldowns = CooldownTable()
        wolf = create_enemy("wolf", level=2)
        catalog.get("savage_bite").commit(wolf, cooldowns)

        assert choose_enemy_ability(wolf, catalog, cooldowns) is None
        assert wolf.selected_ability is None

    def test_requirements_respected(self):
        bandit = create_enemy("bandit", level=4)
        assert choose_enemy_ability(bandit, default_catalog(), CooldownTable()) == "power_strike"

    def test_no_abilities(self):
        goblin = create_enemy("goblin")
        assert choose_enemy_ability(goblin, default_catalog(), CooldownTable()) is None
