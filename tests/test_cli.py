import pytest

from main import parse_args


class TestParseArgs:
    def test_defaults(self):
        args = parse_args(["generate_feedback"])
        assert args.task == "generate_feedback"
        assert args.max_iterations is None
        assert args.image == []
        assert args.stream is False

    def test_max_iterations(self):
        assert parse_args(["custom", "--max-iterations", "5"]).max_iterations == 5

    @pytest.mark.parametrize("value", ["0", "-3"])
    def test_non_positive_max_iterations_rejected(self, value, capsys):
        with pytest.raises(SystemExit) as exc:
            parse_args(["custom", "--max-iterations", value])
        assert exc.value.code == 2
        assert "--max-iterations must be at least 1" in capsys.readouterr().err
