"""Tests for the trajectory data model and loaders."""

import json
import math

import pytest
import torch

from pointcloth.core.trajectory import Cloth, cloth_from_records, load_cloth
from pointcloth.errors import DataError


class TestClothFromRecords:
    def test_dots_in_first_appearance_order_frames_sorted(self):
        records = [
            ("b", 1, 3.0, 4.0),
            ("a", 0, 0.0, 0.0),
            ("b", 0, 1.0, 2.0),
            ("a", 1, 5.0, 6.0),
        ]
        cloth = cloth_from_records(records)
        assert cloth.dot_ids == ["b", "a"]
        assert cloth.frame_numbers == [0, 1]
        assert cloth.positions.shape == (2, 2, 2)
        assert cloth.positions[0, 0].tolist() == [1.0, 2.0]
        assert cloth.positions[1, 1].tolist() == [5.0, 6.0]

    def test_mapping_records_case_insensitive(self):
        records = [
            {"id": 1, "frame": 0, "X": 1.5, "Y": -2.0},
            {"ID": 1, "Frame": 1, "x": 2.5, "y": -3.0},
        ]
        cloth = cloth_from_records(records)
        assert cloth.num_dots == 1
        assert cloth.num_frames == 2
        assert cloth.positions[0, 1].tolist() == [2.5, -3.0]

    def test_empty_input_raises(self):
        with pytest.raises(DataError, match="No trajectory records"):
            cloth_from_records([])

    def test_duplicate_record_raises(self):
        with pytest.raises(DataError, match="Duplicate"):
            cloth_from_records([(0, 0, 0.0, 0.0), (0, 0, 1.0, 1.0)])

    def test_missing_frame_raises(self):
        records = [(0, 0, 0.0, 0.0), (0, 1, 1.0, 1.0), (1, 0, 2.0, 2.0)]
        with pytest.raises(DataError, match="Inconsistent"):
            cloth_from_records(records)

    def test_non_finite_coordinate_raises(self):
        with pytest.raises(DataError, match="non-finite"):
            cloth_from_records([(0, 0, math.nan, 0.0)])

    def test_non_numeric_field_raises(self):
        with pytest.raises(DataError, match="non-numeric"):
            cloth_from_records([(0, "first", 0.0, 0.0)])

    def test_wrong_arity_raises(self):
        with pytest.raises(DataError):
            cloth_from_records([(0, 0, 0.0)])

    def test_data_error_is_value_error(self):
        with pytest.raises(ValueError):
            cloth_from_records([])


class TestClothOperations:
    @pytest.fixture
    def cloth(self):
        positions = torch.arange(2 * 3 * 2, dtype=torch.float64).reshape(2, 3, 2)
        return Cloth(dot_ids=[10, 11], positions=positions, frame_numbers=[0, 1, 2])

    def test_project_flips_y_and_offsets(self, cloth):
        projected = cloth.project(2.0, (100.0, 50.0))
        x, y = cloth.positions[1, 2].tolist()
        assert projected.positions[1, 2].tolist() == [x * 2.0 + 100.0, -y * 2.0 + 50.0]
        # Source untouched
        assert cloth.positions[1, 2].tolist() == [x, y]

    def test_cut_drops_leading_frames(self, cloth):
        cut = cloth.cut(2)
        assert cut.num_frames == 1
        assert cut.frame_numbers == [2]
        assert torch.equal(cut.positions[:, 0], cloth.positions[:, 2])

    def test_cycle_tiles_exactly(self, cloth):
        cycled = cloth.cycle(3)
        assert cycled.num_frames == 9
        for c in range(3):
            assert torch.equal(cycled.positions[:, c * 3:(c + 1) * 3], cloth.positions)

    def test_cycle_one_is_identity(self, cloth):
        assert cloth.cycle(1) is cloth

    def test_subset_copies_rows(self, cloth):
        sub = cloth.subset([1])
        assert sub.dot_ids == [11]
        sub.positions += 1000.0
        assert cloth.positions.max() < 1000.0


class TestLoaders:
    def test_load_csv(self, tmp_path):
        path = tmp_path / "cloth.csv"
        path.write_text("id,frame,X,Y\n0,0,1.0,2.0\n0,1,1.5,2.5\n1,0,3.0,4.0\n1,1,3.5,4.5\n")
        cloth = load_cloth(path)
        assert cloth.num_dots == 2
        assert cloth.num_frames == 2
        assert cloth.positions[1, 1].tolist() == [3.5, 4.5]

    def test_load_json_with_dot_pos_key(self, tmp_path):
        path = tmp_path / "cloth.json"
        data = {"dot_pos": [
            {"id": 0, "frame": 0, "X": 0.0, "Y": 0.0},
            {"id": 0, "frame": 1, "X": 1.0, "Y": 1.0},
        ]}
        path.write_text(json.dumps(data))
        cloth = load_cloth(path)
        assert cloth.num_frames == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_cloth(tmp_path / "absent.csv")

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "cloth.txt"
        path.write_text("nothing")
        with pytest.raises(DataError, match="Unsupported"):
            load_cloth(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "cloth.json"
        path.write_text("{not json")
        with pytest.raises(DataError, match="Invalid JSON"):
            load_cloth(path)
