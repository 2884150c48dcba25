"""Tests for attribute normalization and rule selection."""

import pytest

from helpers import attrs
from spritesheet import (
    Attribute,
    find_matching_config,
    match_condition,
    normalize_attributes,
)


class TestNormalizeAttributes:
    def test_foxy_tail_moves_to_pet_slot(self):
        normalized = normalize_attributes(attrs(("Wearable (Body)", "Foxy Tail")))
        assert normalized == [Attribute("Wearable (Pet)", "Foxy Tail")]

    def test_foxy_tail_dropped_when_pet_present(self):
        normalized = normalize_attributes(
            attrs(("Wearable (Body)", "Foxy Tail"), ("Wearable (Pet)", "Owl"))
        )
        assert normalized == [Attribute("Wearable (Pet)", "Owl")]

    def test_second_foxy_tail_dropped_after_rewrite(self):
        normalized = normalize_attributes(
            attrs(("Wearable (Body)", "Foxy Tail"), ("Wearable (Body)", "Foxy Tail"))
        )
        assert normalized == [Attribute("Wearable (Pet)", "Foxy Tail")]

    def test_blank_pet_does_not_count(self):
        normalized = normalize_attributes(
            attrs(("Wearable (Pet)", "  "), ("Wearable (Body)", "Foxy Tail"))
        )
        assert normalized == attrs(
            ("Wearable (Pet)", "  "), ("Wearable (Pet)", "Foxy Tail")
        )

    def test_other_attributes_keep_order(self):
        original = attrs(
            ("Eye Shape", "Round"),
            ("Wearable (Body)", "Shirt"),
            ("Base Body", "Default"),
        )
        assert normalize_attributes(original) == original

    @pytest.mark.parametrize(
        "pairs",
        [
            [],
            [("Wearable (Body)", "Foxy Tail")],
            [("Wearable (Body)", "Foxy Tail"), ("Wearable (Pet)", "Owl")],
            [("Wearable (Pet)", ""), ("Wearable (Body)", "Foxy Tail"), ("Eye Color", "Blue")],
            [("Wearable (Body)", "Foxy Tail"), ("Wearable (Body)", "Foxy Tail")],
        ],
    )
    def test_idempotent(self, pairs):
        once = normalize_attributes(attrs(*pairs))
        assert normalize_attributes(once) == once


class TestMatchCondition:
    def test_collateral_alias_matches(self):
        rule = {"keys_and_values": [{"keys": ["Collateral"], "values": ["aUSDT"]}]}
        assert match_condition(attrs(("Collateral", "amUSDT")), rule)

    def test_value_mismatch_fails(self):
        rule = {"keys_and_values": [{"keys": ["Collateral"], "values": ["aDAI"]}]}
        assert not match_condition(attrs(("Collateral", "amUSDT")), rule)

    def test_any_attribute_with_key_can_satisfy_values(self):
        rule = {"keys_and_values": [{"keys": ["Wearable (Hands)"], "values": ["Shield"]}]}
        hands = attrs(("Wearable (Hands)", "Sword"), ("Wearable (Hands)", "Shield"))
        assert match_condition(hands, rule)

    def test_presence_check_ignores_value(self):
        rule = {"keys_and_values": [{"keys": ["Eye Shape"], "values": []}]}
        assert match_condition(attrs(("Eye Shape", "anything")), rule)
        assert not match_condition(attrs(("Eye Color", "Blue")), rule)

    def test_all_keys_and_conditions_required(self):
        rule = {
            "keys_and_values": [
                {"keys": ["Base Body", "Eye Shape"]},
                {"keys": ["Collateral"], "values": ["aAAVE"]},
            ]
        }
        full = attrs(("Base Body", "x"), ("Eye Shape", "y"), ("Collateral", "amAAVE"))
        assert match_condition(full, rule)
        assert not match_condition(full[1:], rule)
        assert not match_condition(full[:2], rule)

    def test_rule_without_conditions_matches(self):
        assert match_condition(attrs(("Base Body", "x")), {"properties": []})


class TestFindMatchingConfig:
    def test_first_match_wins(self):
        general = {"keys_and_values": [{"keys": ["Base Body"]}], "name": "general"}
        specific = {
            "keys_and_values": [
                {"keys": ["Base Body"]},
                {"keys": ["Collateral"], "values": ["aDAI"]},
            ],
            "name": "specific",
        }
        config = {"if_keys_and_values": [general, specific]}
        subject = attrs(("Base Body", "x"), ("Collateral", "amDAI"))

        assert find_matching_config(subject, config) is general

    def test_skips_unsatisfied_rules(self):
        first = {"keys_and_values": [{"keys": ["Wearable (Pet)"]}]}
        second = {"keys_and_values": [{"keys": ["Base Body"]}]}
        config = {"if_keys_and_values": [first, second]}

        assert find_matching_config(attrs(("Base Body", "x")), config) is second

    def test_no_match(self):
        config = {"if_keys_and_values": [{"keys_and_values": [{"keys": ["Pet"]}]}]}
        assert find_matching_config(attrs(("Base Body", "x")), config) is None
        assert find_matching_config(attrs(("Base Body", "x")), {}) is None
