"""Tests for the music-blend command line."""

import json

import pytest

from helpers import ScriptedModel

from music_blend import cli
from music_blend.cli import inputs_from_dict, main, track_from_dict


@pytest.fixture
def blend_input(isolated_env):
    path = isolated_env / "inputs.json"
    path.write_text(
        json.dumps(
            {
                "inputs": [
                    {
                        "user_id": "alice",
                        "weight": 3,
                        "tracks": [
                            {"id": f"a{i}", "title": f"Song a{i}", "artist": "Alice Band"}
                            for i in range(1, 6)
                        ],
                    },
                    {
                        "user_id": "bob",
                        "tracks": [
                            {"id": f"b{i}", "title": f"Song b{i}", "artist": "Bob Band"}
                            for i in range(1, 6)
                        ],
                    },
                ]
            }
        )
    )
    return path


@pytest.fixture
def sync_data(isolated_env):
    path = isolated_env / "sync.json"
    path.write_text(
        json.dumps(
            {
                "users": {
                    "alice": {
                        "connections": ["apple"],
                        "library_songs": [
                            {"id": "a1", "track_name": "Song a1", "artist_name": "Alice Band"}
                        ],
                    },
                    "bob": {"connections": ["spotify"], "top_tracks": []},
                }
            }
        )
    )
    return path


class TestEstimateCost:
    def test_prints_cost(self, isolated_env, capsys):
        assert main(["estimate-cost", "--participants", "2"]) == 0
        assert capsys.readouterr().out.strip() == "Estimated cost: $0.6900"

    def test_custom_length(self, isolated_env, capsys):
        assert main(["estimate-cost", "--participants", "2", "--length", "8"]) == 0
        assert "$0.1500" in capsys.readouterr().out


class TestBlendCommand:
    def test_interleave(self, blend_input, capsys):
        assert main(["blend", str(blend_input), "--max-tracks", "4"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert [row["track_id"] for row in output] == ["a1", "b1", "a2", "b2"]
        assert [row["position"] for row in output] == [1, 2, 3, 4]

    def test_weighted(self, blend_input, capsys):
        assert main(["blend", str(blend_input), "--algorithm", "weighted", "--max-tracks", "8"]) == 0
        output = json.loads(capsys.readouterr().out)
        assert sum(row["contributed_by"] == "alice" for row in output) == 5
        assert sum(row["contributed_by"] == "bob" for row in output) == 2

    def test_missing_file(self, isolated_env, capsys):
        assert main(["blend", str(isolated_env / "nope.json")]) == 1
        assert "Bad input" in capsys.readouterr().err

    def test_malformed_input_entry(self, isolated_env, capsys):
        path = isolated_env / "bad_inputs.json"
        path.write_text(json.dumps({"inputs": ["alice"]}))
        assert main(["blend", str(path)]) == 1
        assert "Bad input" in capsys.readouterr().err

    def test_invalid_config(self, blend_input, capsys):
        config_path = blend_input.parent / "bad.toml"
        config_path.write_text('[blend]\ndefault_algorithm = "shuffle"\n')
        assert main(["--config", str(config_path), "blend", str(blend_input)]) == 1
        assert "Invalid configuration" in capsys.readouterr().err


class TestGenerateCommand:
    def test_requires_api_key(self, sync_data, capsys):
        assert main(["generate", str(sync_data), "--name", "Mix", "--users", "alice", "bob"]) == 1
        assert "No OpenAI API key" in capsys.readouterr().err

    def test_insufficient_data(self, sync_data, monkeypatch, capsys):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        assert main(["generate", str(sync_data), "--name", "Mix", "--users", "bob", "carol"]) == 1
        assert "No valid tracks found" in capsys.readouterr().err

    def test_malformed_user_entry(self, isolated_env, monkeypatch, capsys):
        """A user entry that is not an object is reported, not a traceback."""
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        path = isolated_env / "bad_sync.json"
        path.write_text(json.dumps({"users": {"u1": []}}))
        assert main(["generate", str(path), "--name", "Mix", "--users", "u1"]) == 1
        assert "Bad input" in capsys.readouterr().err

    def test_generates_with_fallbacks(self, sync_data, monkeypatch, capsys):
        model = ScriptedModel(RuntimeError("model unavailable"))
        monkeypatch.setattr(
            cli.OpenAILanguageModel, "from_config", staticmethod(lambda ai_config: model)
        )
        argv = ["generate", str(sync_data), "--name", "Mix", "--users", "alice", "bob", "--length", "5"]
        assert main(argv) == 0
        output = json.loads(capsys.readouterr().out)
        assert output["track_count"] == 1
        assert output["complete"] is False
        assert output["tracks"][0]["track_id"] == "a1"


class TestInputParsing:
    def test_track_from_dict_rejects_incomplete(self):
        assert track_from_dict({"id": "1", "title": "Song"}) is None
        assert track_from_dict({"id": "1", "title": "Song", "artist": "X", "source_provider": "tidal"}) is None

    def test_track_from_dict_ignores_unknown_fields(self):
        track = track_from_dict({"id": "1", "title": "Song", "artist": "X", "play_count": 9})
        assert track.source_provider == "apple"

    def test_track_from_dict_skips_non_objects(self):
        assert track_from_dict(["1", "Song", "X"]) is None

    def test_inputs_from_dict(self):
        inputs = inputs_from_dict(
            {"inputs": [{"user_id": 7, "tracks": [{"id": "1", "title": "Song", "artist": "X"}, {}]}]}
        )
        assert inputs[0].user_id == "7"
        assert len(inputs[0].tracks) == 1
        assert inputs[0].effective_weight == 1
