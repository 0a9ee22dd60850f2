# govballot

A governance ballot system in which whitelisted operators vote on the root of
a *meta Merkle tree*. That tree commits to every vote account and to the active
stake delegated to it. Once a ballot is finalized, anyone can prove that a vote
account, or a single stake account under it, is included in the winning root.

## What it contains

- `govballot.state`: the records `ProgramConfig`, `BallotBox`, `Ballot`,
  `BallotTally`, `OperatorVote`, `ConsensusResult`, `MetaMerkleLeaf`,
  `StakeMerkleLeaf` and `MetaMerkleProof`. Each account record has a `pda()`
  method that gives its derived address.
- `govballot.program`: `GovProgram`, which holds the accounts and enforces the
  voting rules. It initializes the config, manages the operator whitelist,
  opens ballot boxes, casts and removes votes, applies the tie breaker,
  finalizes results, and stores, verifies and closes Merkle proofs. Every
  instruction takes an explicit `Clock` where time matters. A rule violation
  raises `govballot.errors.GovError`, and its `code` (an `ErrorCode`) says what
  went wrong. An instruction that raises leaves the accounts unchanged.
- `govballot.merkle`: a SHA-256 Merkle tree with prefixed leaf and node hashes
  and sorted sibling pairs (`MerkleTree`), plus `verify_proof`.
- `govballot.snapshot`: `MetaMerkleSnapshot` and `MetaMerkleLeafBundle`. A
  snapshot can be serialized to bytes, written gzip-compressed, read back and
  hashed (SHA-256 of the uncompressed bytes).
- `govballot.builder`: `generate_meta_merkle_snapshot`, which builds a
  snapshot from `Delegation` records, a map from vote accounts to validator
  identities, and a map from stake pools to their managers.
- `govballot.pubkey`: `Pubkey`, base58 encoding and program-derived addresses.
- `govballot.parsers`: parsers for public keys, 32-byte base-58 values and log
  types.

## Installation

```
pip install .
```

## Example: voting in-process

```python
from govballot.program import Clock, GovProgram
from govballot.pubkey import Pubkey
from govballot.state import Ballot

program = GovProgram()
admin = Pubkey(bytes(range(32)))
operators = [Pubkey(bytes([i + 1]) * 32) for i in range(3)]

program.init_program_config(admin)
program.update_operator_whitelist(admin, operators, None)
program.update_program_config(admin, None, 6666, admin, 10)

clock = Clock(slot=100, epoch=1, unix_timestamp=1_000)
program.init_ballot_box(operators[0], clock)

ballot = Ballot(meta_merkle_root=b"\x01" * 32, snapshot_hash=b"\x02" * 32)
for op in operators:
    program.cast_vote(op, 0, ballot, clock)

result = program.finalize_ballot(0)
print(result.ballot == ballot)  # True
```

## Command line

The `govballot` command works on snapshot files and on a local state file that
holds the program's accounts. The state file is `govballot-state.bin` by
default; use `--state-path` or `STATE_PATH` to choose another. Each command
that changes the state advances a local slot counter and uses the current wall
clock time as its timestamp.

Signing keys come from a keypair file: a JSON array of 64 bytes, holding the
32-byte secret seed followed by the 32-byte public key. Pass it with
`--authority-path` (or `AUTHORITY_PATH`). You can create one with PyNaCl:

```python
import json
from nacl.signing import SigningKey

key = SigningKey.generate()
with open("operator.json", "w") as f:
    json.dump(list(bytes(key) + key.verify_key.encode()), f)
```

Subcommands:

- `generate-meta-merkle --slot N --stake-data-path FILE [--save-path DIR]`
  builds a snapshot from a JSON file and writes `meta_merkle-N.zip`. The JSON
  file has a `delegations` list, where each entry has `voter_pubkey`,
  `stake_account_pubkey`, `staker_pubkey`, `withdrawer_pubkey` and
  `lamports_delegated`. It also has a `validator_identities` object that maps
  vote accounts to identities, and a `stake_pools` object that maps pools to
  managers.
- `log-meta-merkle-hash --read-path FILE [--is-compressed true|false]` prints
  a signature over the slot and the encoded root, then the slot, the Merkle
  root and the snapshot hash.
- `init-program-config`, `update-operator-whitelist [--add KEYS] [--remove KEYS]`
  and `update-program-config [--new-authority-path FILE]
  [--min-consensus-threshold-bps N] [--tie-breaker-admin KEY] [--vote-duration N]`
  manage the config.
- `init-ballot-box`, `cast-vote --id N --root B58 --hash B58`,
  `cast-vote-from-snapshot --id N --read-path FILE`, `remove-vote --id N`,
  `set-tie-breaker --id N --idx I` and `finalize-ballot --id N` run the ballot.
- `log --ty program-config|ballot-box|consensus-result|proof [--id N]
  [--vote-account KEY]` prints a stored account.

For example:

```
govballot -a operator.json log-meta-merkle-hash --read-path meta_merkle-340850340.zip
```

When a command fails, it prints `Error: ...` to standard error and exits with
status 1. Run `govballot --help` to see every subcommand and option.

## What it does not do

The package does not connect to a cluster or RPC node, and it does not send
transactions. All accounts live in memory or in the local state file. It does
not read ledgers or bank snapshots either. Stake delegations, validator
identities and stake pools must be supplied, for example as the JSON file used
by `generate-meta-merkle`. Merkle proof accounts can be stored, verified and
closed only through `GovProgram` in Python; no command does this.

## Running the tests

```
pip install .[test]
pytest
```