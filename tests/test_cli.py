"""
Tests for the crossgate command-line tool.
"""

import json

import pytest

from crossgate.cli.main import build_parser, main
from crossgate.client.admin import GatewayAdmin
from crossgate.client.relayer import RelayerClient
from crossgate.core.settings import get_settings
from crossgate.crypto.hashing import hash_message
from crossgate.crypto.signing import MessageSigner
from crossgate.gateway.program import MessageGatewayProgram
from crossgate.state.journal import EventJournal
from crossgate.state.store import FileAccountStore

from conftest import DEST, SOURCE, make_message


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def populated(tmp_path):
    """File store with a configured gateway and one pending marker."""
    store_dir = tmp_path / "store"
    journal_path = tmp_path / "events.jsonl"
    program = MessageGatewayProgram(
        FileAccountStore(str(store_dir), sync=False),
        EventJournal(str(journal_path), sync=False),
    )
    GatewayAdmin(program, MessageSigner.generate()).setup(DEST, SOURCE)
    RelayerClient(program, MessageSigner.generate()).create_record(make_message(tx_id=7))
    return store_dir, journal_path


class TestCLIParser:
    def test_parse_hash(self):
        args = build_parser().parse_args(
            ["hash", "--tx-id", "1", "--source", "43113", "--dest", "1"]
        )
        assert args.command == "hash"
        assert args.tx_id == 1
        assert args.output == "table"

    def test_no_command(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main([])
        assert exc.value.code == 1


class TestHashCommand:
    def test_json_output(self, capsys):
        main(
            [
                "-o", "json", "hash",
                "--tx-id", "1",
                "--source", str(SOURCE),
                "--dest", str(DEST),
                "--sender", "avax".encode().hex(),
                "--recipient", "00" * 32,
                "--on-chain-data", "68656c6c6f",
                "--hex",
            ]
        )
        out = json.loads(capsys.readouterr().out)
        expected = make_message(recipient=bytes(32))
        assert out["digest"] == hash_message(expected).hex()
        assert out["encoded_length"] == 89

    def test_message_file(self, tmp_path, capsys):
        message = make_message()
        path = tmp_path / "message.json"
        path.write_text(json.dumps(message.to_dict()))

        main(["hash", "--message", str(path)])
        assert hash_message(message).hex() in capsys.readouterr().out

    def test_missing_fields(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["hash", "--tx-id", "1"])
        assert exc.value.code == 1
        assert "required" in capsys.readouterr().err


class TestStoreCommands:
    def test_markers(self, populated, capsys):
        store_dir, _ = populated
        main(["-o", "json", "markers", "--store-dir", str(store_dir)])
        rows = json.loads(capsys.readouterr().out)
        assert [r["txId"] for r in rows] == ["7"]

    def test_markers_table_empty(self, tmp_path, capsys):
        main(["markers", "--store-dir", str(tmp_path / "empty")])
        assert "No pending markers" in capsys.readouterr().out

    def test_status(self, populated, capsys):
        store_dir, _ = populated
        main(["-o", "json", "status", "--store-dir", str(store_dir)])
        status = json.loads(capsys.readouterr().out)

        assert status["pending_markers"] == 1
        assert status["gateways"][0]["chain_id"] == str(DEST)
        assert {r["layer"] for r in status["registries"]} == {"via", "chain", "project"}
        assert status["counters"][0]["highest_tx_id_seen"] == "7"

    def test_status_table(self, populated, capsys):
        store_dir, _ = populated
        main(["status", "--store-dir", str(store_dir)])
        out = capsys.readouterr().out
        assert "Signer registries:" in out
        assert "Pending markers:    1" in out

    def test_journal(self, populated, capsys):
        _, journal_path = populated
        main(["-o", "json", "journal", "--journal", str(journal_path)])
        report = json.loads(capsys.readouterr().out)
        assert report["integrity"] is True
        assert report["entries"][-1]["event_type"] == "TxPdaCreated"

    def test_journal_corruption_exit_code(self, populated, capsys):
        _, journal_path = populated
        lines = journal_path.read_text().splitlines()
        entry = json.loads(lines[0])
        entry["payload"]["chainId"] = "1"
        lines[0] = json.dumps(entry)
        journal_path.write_text("\n".join(lines) + "\n")

        with pytest.raises(SystemExit) as exc:
            main(["journal", "--journal", str(journal_path)])
        assert exc.value.code == 2
        assert "CORRUPT" in capsys.readouterr().out

    def test_journal_type_must_be_known(self, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["journal", "--type", "Bogus"])
        assert exc.value.code == 2


class TestHashValidation:
    def test_negative_tx_id_reported_cleanly(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["hash", "--tx-id", "-1", "--source", "1", "--dest", "2"])
        assert exc.value.code == 1
        assert "Invalid TX ID" in capsys.readouterr().err

    def test_oversized_field_rejected(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main(["hash", "--tx-id", "1", "--source", "1", "--dest", "2", "--sender", "s" * 65])
        assert exc.value.code == 1


# =============================================================================
# OPERATIONS
# =============================================================================


def write_keypair(path, signer):
    path.write_text(json.dumps(list(signer.export_keypair_bytes())))
    return str(path)


@pytest.fixture
def workspace(tmp_path):
    """Store, journal and key files for driving a route from the command line."""
    keys = {
        name: MessageSigner.generate() for name in ("authority", "via", "chain", "relayer")
    }
    files = {name: write_keypair(tmp_path / f"{name}.json", s) for name, s in keys.items()}
    message_path = tmp_path / "message.json"
    message_path.write_text(json.dumps(make_message().to_dict()))
    return {
        "keys": keys,
        "files": files,
        "store": ["--store-dir", str(tmp_path / "store"), "--journal", str(tmp_path / "events.jsonl")],
        "message": str(message_path),
        "signatures": str(tmp_path / "signatures.json"),
        "journal": tmp_path / "events.jsonl",
    }


def run_setup(ws):
    main(
        ["setup", *ws["store"], "--keypair", ws["files"]["authority"],
         "--dest", str(DEST), "--source", str(SOURCE),
         "--via-signer", ws["keys"]["via"].public_key_bytes.hex(),
         "--chain-signer", ws["keys"]["chain"].public_key_bytes.hex()]
    )


class TestOperationParser:
    def test_parse_setup(self):
        args = build_parser().parse_args(
            ["setup", "--keypair", "k.json", "--dest", "2", "--source", "1",
             "--via-signer", "aa", "--via-signer", "bb"]
        )
        assert args.via_signer == ["aa", "bb"]
        assert args.chain_signer is None
        assert args.project_threshold == 0

    def test_keypair_required(self, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(["init-gateway", "--chain-id", "1"])
        assert exc.value.code == 2

    def test_registry_layer_choices(self, capsys):
        with pytest.raises(SystemExit):
            build_parser().parse_args(
                ["init-registry", "--keypair", "k", "--layer", "relay",
                 "--chain-id", "1", "--threshold", "1"]
            )


class TestOperationCommands:
    def test_two_phase_flow(self, workspace, capsys):
        ws = workspace
        run_setup(ws)
        main(["create-record", *ws["store"], "--keypair", ws["files"]["relayer"],
              "--message", ws["message"]])
        for name in ("via", "chain"):
            main(["sign", "--keypair", ws["files"][name], "--message", ws["message"],
                  "--signatures", ws["signatures"]])
        capsys.readouterr()

        main(["-o", "json", "finalize", *ws["store"], "--keypair", ws["files"]["relayer"],
              "--message", ws["message"], "--signatures", ws["signatures"]])
        result = json.loads(capsys.readouterr().out)

        assert result["layerCounts"] == {"via": 1, "chain": 1}
        assert result["digest"] == hash_message(make_message()).hex()
        main(["markers", "--store-dir", ws["store"][1]])
        assert "No pending markers" in capsys.readouterr().out
        journal = EventJournal(str(ws["journal"]), sync=False)
        assert len(journal.read_type("MessageProcessed")) == 1

    def test_setup_rerun_succeeds(self, workspace, capsys):
        run_setup(workspace)
        run_setup(workspace)
        assert "ready" in capsys.readouterr().out

    def test_sign_skips_duplicate_signer(self, workspace, capsys):
        ws = workspace
        for _ in range(2):
            main(["sign", "--keypair", ws["files"]["via"], "--message", ws["message"],
                  "--signatures", ws["signatures"]])
        with open(ws["signatures"]) as f:
            assert len(json.load(f)) == 1
        assert "already present" in capsys.readouterr().err

    def test_finalize_without_record(self, workspace, capsys):
        ws = workspace
        run_setup(ws)
        main(["sign", "--keypair", ws["files"]["via"], "--message", ws["message"],
              "--signatures", ws["signatures"]])
        with pytest.raises(SystemExit) as exc:
            main(["finalize", *ws["store"], "--keypair", ws["files"]["relayer"],
                  "--message", ws["message"], "--signatures", ws["signatures"]])
        assert exc.value.code == 1
        assert "No pending record" in capsys.readouterr().err

    def test_init_commands(self, workspace, capsys):
        ws = workspace
        auth = ["--keypair", ws["files"]["authority"]]
        main(["init-gateway", *ws["store"], *auth, "--chain-id", str(DEST)])
        main(["init-registry", *ws["store"], *auth, "--layer", "chain",
              "--chain-id", str(SOURCE), "--gateway-chain-id", str(DEST),
              "--signer", ws["keys"]["chain"].public_key_bytes.hex(), "--threshold", "1"])
        main(["init-counter", *ws["store"], *auth, "--source", str(SOURCE),
              "--gateway-chain-id", str(DEST)])
        capsys.readouterr()

        main(["-o", "json", "status", "--store-dir", ws["store"][1]])
        status = json.loads(capsys.readouterr().out)
        assert [r["layer"] for r in status["registries"]] == ["chain"]
        assert status["counters"][0]["source_chain_id"] == str(SOURCE)

        with pytest.raises(SystemExit) as exc:
            main(["init-gateway", *ws["store"], *auth, "--chain-id", str(DEST)])
        assert exc.value.code == 1

    def test_send(self, workspace, capsys):
        ws = workspace
        main(["init-gateway", *ws["store"], "--keypair", ws["files"]["authority"],
              "--chain-id", str(DEST)])
        capsys.readouterr()
        main(["-o", "json", "send", *ws["store"], "--keypair", ws["files"]["relayer"],
              "--chain-id", str(DEST), "--tx-id", "5", "--dest", str(SOURCE),
              "--recipient", "aa" * 20, "--data", "00ff"])
        request = json.loads(capsys.readouterr().out)
        assert request["txId"] == "5"
        assert request["chainData"] == "00ff"
        assert request["sender"] == ws["keys"]["relayer"].public_key_bytes.hex()
