"""Message catalogue tests."""

from pathlib import Path

from app.core.i18n import STRINGS, t


APP_DIR = Path(__file__).resolve().parent.parent / "app"


def test_every_message_key_is_used():
    """Test that the catalogue holds no keys the bot never reads."""
    sources = "\n".join(
        p.read_text(encoding="utf-8") for p in APP_DIR.rglob("*.py") if p.name != "i18n.py"
    )
    unused = sorted(key for key in STRINGS if f'"{key}"' not in sources)
    assert unused == []


def test_t_formats_and_falls_back():
    """Test placeholder substitution and the raw-template fallback."""
    assert "Кроссовки" in t("wizard.ask_category", title="Кроссовки")
    assert t("wizard.ask_category") == STRINGS["wizard.ask_category"]
    assert t("no.such.key") == "no.such.key"
