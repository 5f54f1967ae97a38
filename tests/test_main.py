from genetics import EvolutionConfig, GeneticAlgorithm
from helpers import constant_brain
from main import main
from records import save_run


def saved_run(tmp_path, output=None):
    ga = GeneticAlgorithm(4, EvolutionConfig(seed=0))
    for i in range(4):
        ga.tick_alive(i, float(10 * i))
        ga.kill(i)
    ga.evolve()
    if output is not None:
        ga.champion.brain = constant_brain(output)
    save_run(ga, str(tmp_path))
    return tmp_path


def test_observe_prints_decision(tmp_path, capsys):
    run_dir = saved_run(tmp_path, output=0.6)
    code = main([
        "--load-brain", str(run_dir / "best_brain.pt"),
        "--observe", "150", "200", "100", "50", "-200", "500",
    ])
    out = capsys.readouterr().out
    assert code == 0
    assert "Inputs: [0.000, -0.500, 0.250, 0.100]" in out
    assert "Output: 0.6000" in out
    assert "Flap: True" in out


def test_threshold_override(tmp_path, capsys):
    run_dir = saved_run(tmp_path, output=0.6)
    main([
        "--load-brain", str(run_dir / "best_brain.pt"),
        "--observe", "150", "200", "100", "50", "0", "500",
        "--threshold", "0.7",
    ])
    assert "Flap: False" in capsys.readouterr().out


def test_history_table(tmp_path, capsys):
    run_dir = saved_run(tmp_path)
    assert main(["--history", str(run_dir / "history.json")]) == 0
    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].split()[0] == "Gen"
    assert len(lines) == 2
    assert lines[1].split()[0] == "1"


def test_no_arguments_prints_help(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_observe_uses_saved_normalization(tmp_path, capsys):
    ga = GeneticAlgorithm(4, EvolutionConfig.simple(seed=0))
    for i in range(4):
        ga.kill(i)
    ga.evolve()
    save_run(ga, str(tmp_path))

    main([
        "--load-brain", str(tmp_path / "best_brain.pt"),
        "--observe", "100", "300", "200", "300", "0", "400",
    ])
    assert "Inputs: [0.250, 0.750, 0.500, 0.500]" in capsys.readouterr().out
