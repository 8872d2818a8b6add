"""Tests for the 8-entrant double-elimination bracket topology."""

from dataclasses import replace

import pytest

from finals.errors import StructuralError, ValidationError
from finals.services.bracket_topology import (
    BRACKET_MATCH_COUNT,
    GRAND_FINAL_MATCH,
    GRAND_FINAL_RESET_MATCH,
    ROUND_LOSERS_R1,
    ROUND_LOSERS_R2,
    ROUND_LOSERS_R3,
    ROUND_WINNERS_QF,
    SIDE_GRAND_FINAL,
    SIDE_LOSERS,
    SIDE_WINNERS,
    SeededEntrant,
    SlotRef,
    build_topology,
    generate_bracket,
    round_names,
    topology_by_number,
    validate_topology,
)


def _seeds(n=8):
    return [SeededEntrant(entrant_id=100 + i, display_name=f"S{i + 1}") for i in range(n)]


class TestBuildTopology:
    def test_match_numbers_are_contiguous(self):
        specs = build_topology()
        assert [s.match_number for s in specs] == list(range(1, BRACKET_MATCH_COUNT + 1))

    def test_seventeen_matches_with_grand_final_pair_last(self):
        specs = build_topology()
        assert len(specs) == 17
        assert BRACKET_MATCH_COUNT == 17
        assert GRAND_FINAL_MATCH == 16
        assert GRAND_FINAL_RESET_MATCH == 17
        by_num = topology_by_number()
        assert by_num[16].position_tag == "GF"
        assert by_num[17].position_tag == "GF-RESET"

    def test_side_counts(self):
        specs = build_topology()
        sides = [s.bracket_side for s in specs]
        assert sides.count(SIDE_WINNERS) == 7
        assert sides.count(SIDE_LOSERS) == 8
        assert sides.count(SIDE_GRAND_FINAL) == 2

    def test_topology_is_valid(self):
        validate_topology(build_topology())

    def test_every_round_has_a_display_name(self):
        for spec in build_topology():
            assert spec.round_name == round_names[spec.round]

    def test_position_tags_are_unique(self):
        tags = [s.position_tag for s in build_topology()]
        assert len(set(tags)) == len(tags)

    def test_qf_wiring(self):
        by_num = topology_by_number()
        assert by_num[1].winner_to == SlotRef(5, 1)
        assert by_num[1].loser_to == SlotRef(8, 1)
        assert by_num[2].winner_to == SlotRef(5, 2)
        assert by_num[2].loser_to == SlotRef(8, 2)
        assert by_num[3].winner_to == SlotRef(6, 1)
        assert by_num[4].loser_to == SlotRef(9, 2)

    def test_finals_feed_grand_final(self):
        by_num = topology_by_number()
        assert by_num[7].winner_to == SlotRef(GRAND_FINAL_MATCH, 1)
        assert by_num[7].loser_to == SlotRef(15, 2)
        assert by_num[15].winner_to == SlotRef(GRAND_FINAL_MATCH, 2)

    def test_losers_bracket_has_no_loser_destination(self):
        for spec in build_topology():
            if spec.bracket_side == SIDE_LOSERS:
                assert spec.loser_to is None
                assert spec.winner_to is not None

    def test_losers_round_three_is_a_bye_round(self):
        by_num = topology_by_number()
        byes = [s.match_number for s in build_topology() if s.bye]
        assert byes == [12, 13]
        for number in byes:
            assert by_num[number].round == ROUND_LOSERS_R3
            assert round_names[ROUND_LOSERS_R3] == "Losers Round 3"
        assert by_num[10].winner_to == SlotRef(12, 1)
        assert by_num[11].winner_to == SlotRef(13, 1)
        assert by_num[12].winner_to == SlotRef(14, 1)
        assert by_num[13].winner_to == SlotRef(14, 2)

    def test_semi_final_losers_enter_losers_round_two(self):
        by_num = topology_by_number()
        assert by_num[5].loser_to == SlotRef(11, 2)
        assert by_num[6].loser_to == SlotRef(10, 2)
        assert by_num[10].round == by_num[11].round == ROUND_LOSERS_R2

    def test_grand_final_pair_has_no_static_destination(self):
        by_num = topology_by_number()
        for number in (GRAND_FINAL_MATCH, GRAND_FINAL_RESET_MATCH):
            assert by_num[number].winner_to is None
            assert by_num[number].loser_to is None

    def test_semi_final_losers_avoid_immediate_rematch(self):
        """A winners SF loser must not meet the losers R1 winner fed by their own QF pair."""
        by_num = topology_by_number()
        for sf in (5, 6):
            feeding_qfs = [s for s in build_topology() if s.winner_to and s.winner_to.match_number == sf]
            own_r1 = {s.loser_to.match_number for s in feeding_qfs}
            r2 = by_num[sf].loser_to.match_number
            r1_feeding_r2 = {s.match_number for s in build_topology()
                             if s.round == ROUND_LOSERS_R1 and s.winner_to.match_number == r2}
            assert own_r1.isdisjoint(r1_feeding_r2)

    def test_every_entrant_path_ends_in_grand_final(self):
        by_num = topology_by_number()
        for spec in build_topology():
            if spec.bracket_side == SIDE_GRAND_FINAL:
                continue
            current = spec
            hops = 0
            while current.winner_to is not None:
                current = by_num[current.winner_to.match_number]
                hops += 1
                assert hops <= BRACKET_MATCH_COUNT
            assert current.match_number == GRAND_FINAL_MATCH


class TestValidateTopology:
    def test_missing_match_number(self):
        specs = build_topology()[:-1]
        with pytest.raises(StructuralError, match="match numbers"):
            validate_topology(specs)

    def test_self_route(self):
        specs = build_topology()
        specs[0] = replace(specs[0], winner_to=SlotRef(1, 1))
        with pytest.raises(StructuralError, match="routes into itself"):
            validate_topology(specs)

    def test_route_to_missing_match(self):
        specs = build_topology()
        specs[0] = replace(specs[0], winner_to=SlotRef(42, 1))
        with pytest.raises(StructuralError, match="missing match 42"):
            validate_topology(specs)

    def test_invalid_position(self):
        specs = build_topology()
        specs[0] = replace(specs[0], winner_to=SlotRef(5, 3))
        with pytest.raises(StructuralError, match="invalid position"):
            validate_topology(specs)

    def test_same_winner_and_loser_slot(self):
        specs = build_topology()
        specs[0] = replace(specs[0], loser_to=specs[0].winner_to)
        with pytest.raises(StructuralError, match="same slot"):
            validate_topology(specs)

    def test_slot_fed_twice(self):
        specs = build_topology()
        specs[1] = replace(specs[1], winner_to=SlotRef(5, 1))
        with pytest.raises(StructuralError, match="fed by both"):
            validate_topology(specs)

    def test_non_grand_final_without_winner_destination(self):
        specs = build_topology()
        specs[7] = replace(specs[7], winner_to=None)
        with pytest.raises(StructuralError, match="no winner destination"):
            validate_topology(specs)

    def test_bye_fed_twice_rejected(self):
        specs = build_topology()
        # Losers R2 match 11 now also feeds bye 12 slot 2
        specs[10] = replace(specs[10], winner_to=SlotRef(12, 2))
        with pytest.raises(StructuralError, match="Bye match 12"):
            validate_topology(specs)

    def test_bye_with_loser_destination_rejected(self):
        specs = build_topology()
        specs[11] = replace(specs[11], loser_to=SlotRef(9, 1))
        with pytest.raises(StructuralError):
            validate_topology(specs)

    def test_bye_feeding_bye_rejected(self):
        specs = build_topology()
        specs[11] = replace(specs[11], winner_to=SlotRef(13, 2))
        with pytest.raises(StructuralError, match="feeds another bye"):
            validate_topology(specs)


class TestGenerateBracket:
    def test_seeds_placed_in_quarter_finals(self):
        specs = generate_bracket(_seeds())
        qf = [s for s in specs if s.round == ROUND_WINNERS_QF]
        pairs = [(s.player1_entrant_id, s.player2_entrant_id) for s in qf]
        # Seed N has entrant_id 100 + N - 1
        assert pairs == [(100, 107), (103, 104), (101, 106), (102, 105)]

    def test_seeds_one_and_two_only_meet_in_winners_final(self):
        specs = generate_bracket(_seeds())
        by_num = {s.match_number: s for s in specs}
        qf_of = {}
        for s in specs:
            if s.round == ROUND_WINNERS_QF:
                qf_of[s.player1_seed] = s
        sf_for_1 = by_num[qf_of[1].winner_to.match_number]
        sf_for_2 = by_num[qf_of[2].winner_to.match_number]
        assert sf_for_1.match_number != sf_for_2.match_number
        assert sf_for_1.winner_to.match_number == sf_for_2.winner_to.match_number == 7

    def test_only_quarter_finals_have_entrants(self):
        for s in generate_bracket(_seeds()):
            if s.round != ROUND_WINNERS_QF:
                assert s.player1_entrant_id is None
                assert s.player2_entrant_id is None

    def test_is_deterministic(self):
        assert generate_bracket(_seeds()) == generate_bracket(_seeds())

    def test_seventeen_unique_match_numbers(self):
        specs = generate_bracket(_seeds())
        assert len(specs) == 17
        assert sorted(s.match_number for s in specs) == list(range(1, 18))

    def test_generated_bracket_is_valid(self):
        validate_topology(generate_bracket(_seeds()))

    @pytest.mark.parametrize("n", [4, 7, 9, 16])
    def test_unsupported_size(self, n):
        with pytest.raises(ValidationError, match=f"Unsupported bracket size {n}"):
            generate_bracket(_seeds(n))

    def test_duplicate_entrant_rejected(self):
        seeds = _seeds()
        seeds[7] = SeededEntrant(entrant_id=100, display_name="dup")
        with pytest.raises(ValidationError, match="seeded more than once"):
            generate_bracket(seeds)
