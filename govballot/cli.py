"""Command-line interface: snapshots and governance instructions against a local state file."""

from __future__ import annotations

import argparse
import json
import logging
import os
import pickle
import struct
import sys
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, Sequence, TypeVar

from nacl.signing import SigningKey

from govballot.builder import Delegation, generate_meta_merkle_snapshot
from govballot.errors import GovError
from govballot.parsers import LogType, parse_base_58_32, parse_log_type, parse_pubkey
from govballot.program import Clock, GovProgram
from govballot.pubkey import Pubkey, b58encode
from govballot.snapshot import MetaMerkleSnapshot
from govballot.state import Ballot, BallotBox, ConsensusResult, MetaMerkleProof, ProgramConfig

log = logging.getLogger(__name__)

SLOTS_PER_EPOCH = 432_000
DEFAULT_STATE_PATH = "govballot-state.bin"

T = TypeVar("T")


def read_keypair_file(path: str | os.PathLike[str]) -> SigningKey:
    """Read a keypair stored as a JSON array of 64 bytes (secret key, then public key)."""
    with open(path, encoding="utf-8") as stream:
        raw = json.load(stream)
    if (
        not isinstance(raw, list)
        or len(raw) != 64
        or not all(isinstance(b, int) and 0 <= b <= 255 for b in raw)
    ):
        raise ValueError(f"{path}: a keypair file holds a JSON array of 64 bytes")
    data = bytes(raw)
    key = SigningKey(data[:32])
    if key.verify_key.encode() != data[32:]:
        raise ValueError(f"{path}: public key does not match the secret key")
    return key


def _pubkey(key: SigningKey) -> Pubkey:
    return Pubkey(key.verify_key.encode())


def meta_merkle_hash_report(
    snapshot: MetaMerkleSnapshot, snapshot_hash: bytes, signing_key: SigningKey
) -> str:
    """Sign the slot and encoded root of a snapshot and describe it in four lines."""
    encoded_root = b58encode(snapshot.root)
    message = struct.pack("<Q", snapshot.slot) + encoded_root.encode("ascii")
    signature = signing_key.sign(message).signature
    return "\n".join(
        [
            f"Signature: {b58encode(signature)}",
            f"Slot: {snapshot.slot}",
            f"Merkle Root: {encoded_root}",
            f"Snapshot Hash: {b58encode(snapshot_hash)}",
        ]
    )


@dataclass
class _LocalCluster:
    """The program's accounts plus a slot counter, kept between invocations."""

    program: GovProgram = field(default_factory=GovProgram)
    slot: int = 0

    def next_clock(self) -> Clock:
        self.slot += 1
        return Clock(
            slot=self.slot,
            epoch=self.slot // SLOTS_PER_EPOCH,
            unix_timestamp=int(time.time()),
        )


@contextmanager
def _open_cluster(path: str | os.PathLike[str], *, write: bool = True) -> Iterator[_LocalCluster]:
    """Load the cluster state; save it again only if the block finishes without error."""
    path = Path(path)
    if path.exists():
        with path.open("rb") as stream:
            cluster = pickle.load(stream)
    else:
        cluster = _LocalCluster()
    yield cluster
    if write:
        tmp = path.with_name(path.name + ".tmp")
        with tmp.open("wb") as stream:
            pickle.dump(cluster, stream)
        tmp.replace(path)


# Argument types.


def _arg_type(parse: Callable[[str], T], name: str) -> Callable[[str], T]:
    def convert(text: str) -> T:
        try:
            return parse(text)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(str(exc)) from None

    convert.__name__ = name
    return convert


def _int_range(low: int, high: int, name: str) -> Callable[[str], int]:
    def parse(text: str) -> int:
        value = int(text)
        if not low <= value <= high:
            raise ValueError(f"{value} is not in {low}..={high}")
        return value

    return _arg_type(parse, name)


def _parse_bool(text: str) -> bool:
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise ValueError(f"invalid value {text!r}: expected true or false")


_U8 = _int_range(0, 2**8 - 1, "u8")
_U16 = _int_range(0, 2**16 - 1, "u16")
_U64 = _int_range(0, 2**64 - 1, "u64")
_I64 = _int_range(-(2**63), 2**63 - 1, "i64")
_BOOL = _arg_type(_parse_bool, "bool")
_PUBKEY = _arg_type(parse_pubkey, "pubkey")
_PUBKEYS = _arg_type(lambda text: [parse_pubkey(part) for part in text.split(",")], "pubkeys")
_BASE58_32 = _arg_type(parse_base_58_32, "base58")
_LOG_TYPE = _arg_type(parse_log_type, "log_type")


def _env(name: str, default: Any = None) -> Any:
    return os.environ.get(name, default)


# Command handlers.


def _applied(clock: Clock) -> None:
    log.info("Transaction applied at slot %d", clock.slot)


def _cmd_init_program_config(args: argparse.Namespace) -> None:
    log.info("InitProgramConfig...")
    authority = _pubkey(read_keypair_file(args.authority_path))
    with _open_cluster(args.state_path) as cluster:
        cluster.program.init_program_config(authority)
        _applied(cluster.next_clock())


def _cmd_update_operator_whitelist(args: argparse.Namespace) -> None:
    log.info("UpdateOperatorWhitelist...")
    authority = _pubkey(read_keypair_file(args.authority_path))
    with _open_cluster(args.state_path) as cluster:
        cluster.program.update_operator_whitelist(authority, args.add, args.remove)
        _applied(cluster.next_clock())


def _cmd_update_program_config(args: argparse.Namespace) -> None:
    log.info("UpdateProgramConfig...")
    authority = _pubkey(read_keypair_file(args.authority_path))
    new_authority = (
        _pubkey(read_keypair_file(args.new_authority_path))
        if args.new_authority_path is not None
        else None
    )
    with _open_cluster(args.state_path) as cluster:
        cluster.program.update_program_config(
            authority,
            new_authority,
            args.min_consensus_threshold_bps,
            args.tie_breaker_admin,
            args.vote_duration,
        )
        _applied(cluster.next_clock())


def _cmd_init_ballot_box(args: argparse.Namespace) -> None:
    log.info("InitBallotBox...")
    operator = _pubkey(read_keypair_file(args.authority_path))
    with _open_cluster(args.state_path) as cluster:
        clock = cluster.next_clock()
        ballot_box = cluster.program.init_ballot_box(operator, clock)
        log.info("Opened ballot box %d", ballot_box.ballot_id)
        _applied(clock)


def _cast_vote(args: argparse.Namespace, root: bytes, snapshot_hash: bytes) -> None:
    operator = _pubkey(read_keypair_file(args.authority_path))
    with _open_cluster(args.state_path) as cluster:
        clock = cluster.next_clock()
        cluster.program.cast_vote(
            operator, args.id, Ballot(meta_merkle_root=root, snapshot_hash=snapshot_hash), clock
        )
        _applied(clock)
    log.info("== Voted For Ballot Box %d ==", args.id)
    log.info("Merkle Root: %s", b58encode(root))
    log.info("Snapshot Hash: %s", b58encode(snapshot_hash))


def _cmd_cast_vote(args: argparse.Namespace) -> None:
    _cast_vote(args, args.root, args.hash)


def _cmd_cast_vote_from_snapshot(args: argparse.Namespace) -> None:
    snapshot = MetaMerkleSnapshot.read(args.read_path, args.is_compressed)
    log.info("Using snapshot for slot %d", snapshot.slot)
    snapshot_hash = MetaMerkleSnapshot.snapshot_hash(args.read_path, args.is_compressed)
    _cast_vote(args, snapshot.root, snapshot_hash)


def _cmd_remove_vote(args: argparse.Namespace) -> None:
    log.info("RemoveVote...")
    operator = _pubkey(read_keypair_file(args.authority_path))
    with _open_cluster(args.state_path) as cluster:
        clock = cluster.next_clock()
        cluster.program.remove_vote(operator, args.id, clock)
        _applied(clock)


def _cmd_set_tie_breaker(args: argparse.Namespace) -> None:
    log.info("SetTieBreaker...")
    admin = _pubkey(read_keypair_file(args.authority_path))
    with _open_cluster(args.state_path) as cluster:
        clock = cluster.next_clock()
        cluster.program.set_tie_breaker(admin, args.id, args.idx, clock)
        _applied(clock)


def _cmd_finalize_ballot(args: argparse.Namespace) -> None:
    log.info("FinalizeBallot...")
    with _open_cluster(args.state_path) as cluster:
        cluster.program.finalize_ballot(args.id)
        _applied(cluster.next_clock())


def _require_id(ballot_id: int | None) -> int:
    if ballot_id is None:
        raise ValueError("Missing --id argument")
    return ballot_id


def _find_account(
    program: GovProgram, ty: LogType, ballot_id: int | None, vote_account: Pubkey | None
) -> ProgramConfig | BallotBox | ConsensusResult | MetaMerkleProof:
    if ty is LogType.PROGRAM_CONFIG:
        account: Any = program.program_config
        address = ProgramConfig.pda()[0]
    elif ty is LogType.BALLOT_BOX:
        ballot_id = _require_id(ballot_id)
        account = program.ballot_boxes.get(ballot_id)
        address = BallotBox.pda(ballot_id)[0]
    elif ty is LogType.CONSENSUS_RESULT:
        ballot_id = _require_id(ballot_id)
        account = program.consensus_results.get(ballot_id)
        address = ConsensusResult.pda(ballot_id)[0]
    else:
        ballot_id = _require_id(ballot_id)
        if vote_account is None:
            raise ValueError("Missing --vote-account argument")
        consensus_key = ConsensusResult.pda(ballot_id)[0]
        account = program.meta_merkle_proofs.get((ballot_id, vote_account))
        address = MetaMerkleProof.pda(consensus_key, vote_account)[0]
    if account is None:
        raise ValueError(f"account {address} not found")
    return account


def _cmd_log(args: argparse.Namespace) -> None:
    with _open_cluster(args.state_path, write=False) as cluster:
        print(repr(_find_account(cluster.program, args.ty, args.id, args.vote_account)))


def _load_stake_data(
    path: str | os.PathLike[str],
) -> tuple[list[Delegation], dict[Pubkey, Pubkey], dict[Pubkey, Pubkey]]:
    with open(path, encoding="utf-8") as stream:
        data = json.load(stream)
    try:
        delegations = [
            Delegation(
                voter_pubkey=parse_pubkey(entry["voter_pubkey"]),
                stake_account_pubkey=parse_pubkey(entry["stake_account_pubkey"]),
                staker_pubkey=parse_pubkey(entry["staker_pubkey"]),
                withdrawer_pubkey=parse_pubkey(entry["withdrawer_pubkey"]),
                lamports_delegated=int(entry["lamports_delegated"]),
            )
            for entry in data.get("delegations", [])
        ]
    except KeyError as exc:
        raise ValueError(f"{path}: delegation is missing field {exc}") from None
    identities = {
        parse_pubkey(vote): parse_pubkey(identity)
        for vote, identity in data.get("validator_identities", {}).items()
    }
    pools = {
        parse_pubkey(pool): parse_pubkey(manager)
        for pool, manager in data.get("stake_pools", {}).items()
    }
    return delegations, identities, pools


def _cmd_generate_meta_merkle(args: argparse.Namespace) -> None:
    start = time.perf_counter()
    delegations, identities, pools = _load_stake_data(args.stake_data_path)
    snapshot = generate_meta_merkle_snapshot(delegations, identities, pools, args.slot)
    file_path = Path(args.save_path) / f"meta_merkle-{args.slot}.zip"
    snapshot.save_compressed(file_path)
    log.info("Saved snapshot to %s", file_path)
    log.info("Time taken: %.3fs", time.perf_counter() - start)


def _cmd_log_meta_merkle_hash(args: argparse.Namespace) -> None:
    authority = read_keypair_file(args.authority_path)
    snapshot = MetaMerkleSnapshot.read(args.read_path, args.is_compressed)
    snapshot_hash = MetaMerkleSnapshot.snapshot_hash(args.read_path, args.is_compressed)
    print(meta_merkle_hash_report(snapshot, snapshot_hash, authority))


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for every command."""
    parser = argparse.ArgumentParser(
        prog="govballot", description="Governance ballots over meta merkle snapshots."
    )
    parser.add_argument(
        "-a", "--authority-path", default=_env("AUTHORITY_PATH", "/"),
        help="keypair file of the signing authority or operator",
    )
    parser.add_argument(
        "-s", "--state-path", default=_env("STATE_PATH", DEFAULT_STATE_PATH),
        help="file holding the program's accounts",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    def add(name: str, handler: Callable[[argparse.Namespace], None], **kwargs: Any):
        sub = commands.add_parser(name, **kwargs)
        sub.set_defaults(handler=handler)
        return sub

    def add_id(sub: argparse.ArgumentParser, required: bool = True) -> None:
        sub.add_argument("--id", type=_U64, required=required, help="id of ballot box")

    sub = add("generate-meta-merkle", _cmd_generate_meta_merkle)
    sub.add_argument("--slot", type=_U64, default=_env("SLOT"), required=_env("SLOT") is None)
    sub.add_argument(
        "--stake-data-path", default=_env("STAKE_DATA_PATH"),
        required=_env("STAKE_DATA_PATH") is None,
        help="JSON file of delegations, validator identities and stake pools",
    )
    sub.add_argument(
        "--save-path", default=_env("SAVE_PATH", "./"), help="Path to save meta merkle tree"
    )

    sub = add("log-meta-merkle-hash", _cmd_log_meta_merkle_hash)
    sub.add_argument(
        "--read-path", default=_env("READ_PATH"), required=_env("READ_PATH") is None,
        help="Path to read meta merkle tree",
    )
    sub.add_argument("--is-compressed", type=_BOOL, default=True)

    add("init-program-config", _cmd_init_program_config)

    sub = add("update-operator-whitelist", _cmd_update_operator_whitelist)
    sub.add_argument("-a", "--add", type=_PUBKEYS, action="extend", default=None)
    sub.add_argument("-r", "--remove", type=_PUBKEYS, action="extend", default=None)

    sub = add("update-program-config", _cmd_update_program_config)
    sub.add_argument("--new-authority-path", default=_env("NEW_AUTHORITY_PATH"))
    sub.add_argument("--min-consensus-threshold-bps", type=_U16)
    sub.add_argument("--tie-breaker-admin", type=_PUBKEY)
    sub.add_argument("--vote-duration", type=_I64)

    add("init-ballot-box", _cmd_init_ballot_box)

    sub = add("finalize-ballot", _cmd_finalize_ballot)
    add_id(sub)

    sub = add("cast-vote", _cmd_cast_vote)
    add_id(sub)
    sub.add_argument(
        "--root", type=_BASE58_32, required=True,
        help="Meta merkle tree root, base-58 encoded.",
    )
    sub.add_argument(
        "--hash", type=_BASE58_32, required=True,
        help="SHA256 hash of the meta merkle snapshot, base-58 encoded.",
    )

    sub = add("cast-vote-from-snapshot", _cmd_cast_vote_from_snapshot)
    add_id(sub)
    sub.add_argument(
        "--read-path", default=_env("READ_PATH"), required=_env("READ_PATH") is None,
        help="Path to read meta merkle tree",
    )
    sub.add_argument("--is-compressed", type=_BOOL, default=True)

    sub = add("remove-vote", _cmd_remove_vote)
    add_id(sub)

    sub = add("set-tie-breaker", _cmd_set_tie_breaker)
    add_id(sub)
    sub.add_argument(
        "--idx", type=_U8, required=True,
        help="Index in ballot tallies to set as winning ballot",
    )

    sub = add("log", _cmd_log)
    add_id(sub, required=False)
    sub.add_argument("--vote-account", type=_PUBKEY)
    sub.add_argument(
        "--ty", type=_LOG_TYPE, required=True,
        help="Account type: program-config | ballot-box | consensus-result | proof",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run one command; return the process exit status."""
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    args = build_parser().parse_args(argv)
    try:
        args.handler(args)
    except (GovError, ValueError, OverflowError, IndexError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())