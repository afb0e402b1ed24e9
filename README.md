# monopool

A Stratum mining pool server for a single proof-of-work coin. It talks to
one or more coin daemons over JSON-RPC, builds mining jobs from block
templates, hands work to miners over the Stratum protocol, checks submitted
shares, adjusts each miner's difficulty (vardiff), bans addresses that send
too many invalid shares, and records shares and found blocks in Redis.

Supported proof-of-work hashes (the `algorithm.name` option): `scrypt`,
`sha256d` and `sha256dt` (tagged double SHA-256). Any other name raises
`monopool.algorithm.UnsupportedAlgorithmError`.

## Installing

```
pip install .
```

To run the tests as well:

```
pip install ".[test]"
pytest
```

## Running a pool

Write a JSON configuration file (by default `config.json` in the current
directory) and start the pool:

```
monopool -c config.json -l info
```

`-c` names the configuration file; `-l` sets the log level, one of `debug`
(the default), `info`, `warn`, `warning`, `error`, `dpanic`, `panic` or
`fatal`. The command exits with a message if the configuration file does
not exist, and stops cleanly on Ctrl-C.

A minimal configuration:

```json
{
  "coin": {"name": "litecoin", "symbol": "ltc", "txMessages": false},
  "poolAddress": {"address": "<pool address>", "type": "p2pkh"},
  "rewardRecipients": [],
  "blockRefreshInterval": 5,
  "jobRebroadcastTimeout": 55,
  "connectionTimeout": 600,
  "tcpProxyProtocol": false,
  "banning": {"time": 600, "invalidPercent": 50, "checkThreshold": 500, "purgeInterval": 300},
  "ports": {
    "3333": {
      "diff": 8,
      "varDiff": {
        "minDiff": 8, "maxDiff": 512, "targetTime": 15,
        "retargetTime": 90, "variancePercent": 0.3, "x2mode": false
      }
    }
  },
  "daemons": [
    {"host": "127.0.0.1", "port": 9332, "user": "user", "password": "password"}
  ],
  "storage": {"network": "tcp", "host": "127.0.0.1", "port": 6379, "password": "", "db": 0},
  "algorithm": {"name": "scrypt", "multiplier": 16, "sha256dBlockHasher": true}
}
```

Recipient `type` may be `p2pkh`, `p2sh`, `p2wsh`, `pk` / `publickey` or
`script`. A port may carry `"tls": {"certFile": ..., "keyFile": ...}` to
listen with TLS; a daemon may carry the same to be reached over HTTPS
(server certificates are not verified). With `disablePayment` left false
the pool calls `getbalance` at startup to work out how many decimals the
coin has.

When it starts, the pool:

1. checks that every daemon answers and can hand out block templates;
2. finds out the reward type (POW/POS), network difficulty and hash rate,
   whether the daemon accepts `submitblock`, and whether it runs on testnet;
3. builds the first job, polls for new templates every
   `blockRefreshInterval` seconds and re-sends the current job every
   `jobRebroadcastTimeout` seconds;
4. listens on every configured port and prints a short summary.

Miners may call `mining.subscribe`, `mining.authorize`, `mining.submit`
and `mining.get_transactions` (answered with an empty result). Every worker
login is accepted; a worker name of the form `miner.rig` is recorded under
that miner and rig. With `tcpProxyProtocol` on, a leading PROXY protocol
line sets the miner's address.

## Using the library

The pieces can be used on their own:

```python
from monopool.config import load_options
from monopool.merkletree import MerkleTree, get_merkle_hashes
from monopool.encoding import sha256d, var_int_bytes
from monopool.scripts import p2pkh_address_to_script
from monopool.algorithm import get_hash_func

options = load_options("config.json")
print(options.total_fee_percent())

tree = MerkleTree([None, b"hello", b"world"])
print(get_merkle_hashes(tree.steps))

hasher = get_hash_func("sha256d")
print(hasher(b"header bytes").hex())
```

Main modules:

- `monopool.config` – option records and `load_options`.
- `monopool.daemons` – `DaemonManager` for RPC calls to the daemons.
- `monopool.job`, `monopool.job_manager` – jobs and share validation.
- `monopool.transactions` – coinbase transaction building.
- `monopool.stratum_server`, `monopool.stratum_client` – the Stratum side.
- `monopool.vardiff`, `monopool.banning` – difficulty retargeting and bans.
- `monopool.storage` – `Storage`, the Redis records.
- `monopool.pool` – `Pool` and the `main` entry point.

Redis keys are prefixed with the coin name, for example
`<coin>:pool:miners`, `<coin>:pool:shares` and `<coin>:blocks:pending`.

## What it does not do

- There is no HTTP statistics API; pool, miner and rig figures can only be
  read through `monopool.storage.Storage`.
- New blocks are noticed only by polling the daemon for block templates;
  there is no peer-to-peer block notification.
- Payouts are not processed. Found blocks are recorded as pending, and
  `Storage.confirm_block` / `Storage.kick_block` move them, but nothing
  pays miners.