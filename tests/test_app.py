import pytest

from acadchain.app import main, run_demo


@pytest.mark.asyncio
async def test_demo_walkthrough(capsys):
    await run_demo()

    out = capsys.readouterr().out
    assert "1. University issues a credential" in out
    assert "valid=True on_chain=False status=verified issuer=Demo Issuer" in out
    assert "valid=False status=revoked" in out
    assert "Credential Issued (Demo)" in out


def test_demo_command(capsys):
    assert main(["demo"]) == 0
    assert "status=revoked" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert main([]) == 1
    assert "serve" in capsys.readouterr().out
