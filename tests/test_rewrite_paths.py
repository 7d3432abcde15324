from pathlib import Path

from forksmith.rewrite.paths import discover_files, expand_braces, match_path


def test_expand_braces_lists_alternatives():
    assert expand_braces("api/**/*.{js,ts}") == ["api/**/*.js", "api/**/*.ts"]
    assert expand_braces("Dockerfile") == ["Dockerfile"]


def test_star_stays_within_one_segment():
    assert match_path("src/index.js", "src/*.js")
    assert not match_path("src/lib/index.js", "src/*.js")


def test_double_star_spans_zero_or_more_directories():
    assert match_path("Dockerfile", "**/Dockerfile")
    assert match_path("docker/api/Dockerfile", "**/Dockerfile")
    assert match_path("api/server/routes/auth.ts", "api/**/*.{js,ts}")
    assert not match_path("client/src/auth.ts", "api/**/*.{js,ts}")


def test_discover_files_prunes_skipped_directories(tmp_path: Path):
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "a.js").write_text("", encoding="utf-8")
    (tmp_path / "node_modules" / "pkg").mkdir(parents=True)
    (tmp_path / "node_modules" / "pkg" / "b.js").write_text("", encoding="utf-8")
    found = [p.relative_to(tmp_path).as_posix() for p in discover_files(tmp_path, ["**/*.js"])]
    assert found == ["src/a.js"]
