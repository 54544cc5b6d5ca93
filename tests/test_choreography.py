"""
Tests for the choreography runner and configuration loading.
"""

import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from planning.types import PlanningConstraints, is_valid_assignment
from planning.qubo import build_distance_matrix
from planning.config import DEFAULT_CONFIG, load_config, constraints_from_config
from planning.choreography import (
    GROUND,
    DIAMOND,
    SQUARE,
    DEFAULT_SHOW,
    optimal_distance,
    solve_transition,
    run_show,
    main,
)
from stub_oracles import ReplayOracle, one_hot


class TestSolveTransition:
    """Test single formation transitions."""

    def test_greedy_transition(self):
        """Test the greedy ground to diamond transition and its optimality gap."""
        result = solve_transition(None, 10, GROUND.positions, GROUND.name, DIAMOND)

        assert result.assignments == {0: 3, 1: 1, 2: 2, 3: 0}
        assert result.total_distance == pytest.approx(65.84, abs=0.01)
        assert result.optimal_distance == pytest.approx(60.73, abs=0.01)
        assert result.optimality_gap > 0.0
        assert not result.used_oracle
        assert result.plan is None

    def test_oracle_transition_reaches_optimum(self):
        oracle = ReplayOracle([one_hot({0: 1, 1: 3, 2: 0, 3: 2}, 4, 4)])
        result = solve_transition(oracle, 1, GROUND.positions, GROUND.name, DIAMOND)

        assert result.used_oracle
        assert result.optimality_gap == pytest.approx(0.0)

    def test_optimal_distance_of_identity(self):
        matrix = build_distance_matrix(SQUARE.positions, SQUARE.positions)
        assert optimal_distance(matrix) == pytest.approx(0.0)


class TestRunShow:
    """Test running a whole show."""

    def test_default_show(self):
        """Test every transition of the default show is planned."""
        summary = run_show(None, 10)

        assert len(summary.transitions) == len(DEFAULT_SHOW) - 1
        assert summary.oracle_solved == 0
        for transition in summary.transitions:
            assert is_valid_assignment(transition.assignments, range(4))
            assert transition.plan is not None
            assert transition.plan.min_achieved_separation >= 0.0

        names = [(t.from_formation, t.to_formation) for t in summary.transitions]
        assert names[0] == (GROUND.name, DIAMOND.name)
        assert names[-1][1] == GROUND.name

    def test_summary_dict(self):
        summary = run_show(None, 10, (GROUND, DIAMOND), PlanningConstraints())
        data = summary.to_dict()

        assert data['num_transitions'] == 1
        assert data['fallback_used'] == 1
        assert data['total_distance'] == pytest.approx(summary.total_distance)
        assert data['transitions'][0]['collision_method'] in ("Direct", "StaggeredTiming")

    def test_single_formation_has_no_transitions(self):
        summary = run_show(None, 10, (GROUND,))
        assert summary.transitions == []

    def test_main_runs(self, tmp_path, capsys):
        """Test the command line entry point with a missing config file."""
        code = main(['--config', str(tmp_path / 'missing.yaml'), '--shots', '5', '--seed', '1'])
        out = capsys.readouterr().out

        assert code == 0
        assert "Total distance" in out
        assert "Ground (Line) -> Diamond" in out


class TestConfig:
    """Test YAML configuration loading."""

    def test_repository_config_matches_defaults(self):
        assert load_config() == DEFAULT_CONFIG

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_config(str(tmp_path / 'nope.yaml')) == DEFAULT_CONFIG

    def test_partial_file_merged(self, tmp_path):
        """Test keys absent from the file keep their defaults."""
        path = tmp_path / 'partial.yaml'
        path.write_text("planning:\n  delay_steps: 6\nsolver:\n  shots: 50\n")
        config = load_config(str(path))

        assert config['planning']['delay_steps'] == 6
        assert config['planning']['min_separation_meters'] == 2.0
        assert config['solver']['shots'] == 50
        assert config['swarm'] == DEFAULT_CONFIG['swarm']

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / 'list.yaml'
        path.write_text("- 1\n- 2\n")
        with pytest.raises(ValueError):
            load_config(str(path))

    def test_constraints_from_config(self):
        config = {'planning': {'min_separation_meters': 3.5, 'delay_steps': 1, 'samples_per_path': 2}}
        constraints = constraints_from_config(config)

        assert constraints.min_separation_meters == 3.5
        assert constraints.delay_steps == 2
        assert constraints.samples_per_path == 5
        assert constraints.max_velocity_ms == 5.0


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
