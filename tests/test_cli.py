import json

import pandas as pd
import pytest

from musicpipe.cli import main, parse_cli_args


class TestParseArgs:
    def test_list_models(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc:
            parse_cli_args(["--list-models"])
        assert exc.value.code == 0
        out = capsys.readouterr().out
        assert "logreg_cv" in out
        assert "lasso_cv" in out

    def test_data_required(self) -> None:
        with pytest.raises(SystemExit) as exc:
            parse_cli_args([])
        assert exc.value.code == 2

    def test_typo_suggests_model(self, capsys) -> None:
        with pytest.raises(SystemExit):
            parse_cli_args(["--data", "tracks.csv", "--model", "logreg_vc"])
        assert "Did you mean" in capsys.readouterr().err

    def test_model_task_mismatch(self) -> None:
        with pytest.raises(SystemExit):
            parse_cli_args(["--data", "tracks.csv", "--preset", "popularity", "--model", "knn"])

    @pytest.mark.parametrize("fraction", ["0", "1", "abc"])
    def test_bad_fraction(self, fraction: str) -> None:
        with pytest.raises(SystemExit):
            parse_cli_args(["--data", "tracks.csv", "--train-fraction", fraction])

    def test_overrides(self) -> None:
        cfg = parse_cli_args([
            "--data", "tracks.csv", "--preset", "popularity", "--model", "lasso",
            "--seed", "9", "--train-fraction", "0.8", "--quiet",
        ])
        conf = cfg.pipeline
        assert conf.target_column == "popularity"
        assert conf.model.name == "lasso"
        assert conf.model.cv_scheme == "kfold"
        assert conf.seed == 9
        assert conf.train_fraction == 0.8
        assert not conf.verbose
        assert cfg.report is None

    def test_config_file(self, tmp_path) -> None:
        path = tmp_path / "run.json"
        path.write_text(json.dumps({"target_column": "genre", "seed": 5, "model": {"name": "knn"}}))
        cfg = parse_cli_args(["--data", "tracks.csv", "--config", str(path)])
        assert cfg.pipeline.target_column == "genre"
        assert cfg.pipeline.seed == 5
        assert cfg.pipeline.model.name == "knn"

    def test_bad_config_file(self, tmp_path) -> None:
        path = tmp_path / "run.json"
        path.write_text(json.dumps({"seeds": 5}))
        with pytest.raises(SystemExit):
            parse_cli_args(["--data", "tracks.csv", "--config", str(path)])


class TestMain:
    def test_writes_report(self, genre_df: pd.DataFrame, tmp_path, capsys) -> None:
        data = tmp_path / "music_genre.csv"
        genre_df.to_csv(data, index=False)
        report = tmp_path / "out" / "genre.json"

        code = main(["--data", str(data), "--model", "logreg", "--quiet", "--report", str(report)])
        assert code == 0
        assert "MODEL EVALUATION SUMMARY" in capsys.readouterr().out

        payload = json.loads(report.read_text())
        assert payload["result"]["task"] == "classification"
        assert payload["config"]["model"]["name"] == "logreg"
        assert payload["cleaning"]["rows_before"] == len(genre_df)
        assert "duration_ms" in payload["transforms"]

    def test_missing_file(self, tmp_path, capsys) -> None:
        code = main(["--data", str(tmp_path / "nope.csv"), "--quiet"])
        assert code == 1
        assert "error" in capsys.readouterr().err

    def test_ragged_file(self, tmp_path, capsys) -> None:
        data = tmp_path / "bad.csv"
        data.write_text("tempo,energy\n1,2\n3\n")
        assert main(["--data", str(data), "--quiet"]) == 1
        assert "Line 3" in capsys.readouterr().err
