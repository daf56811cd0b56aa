# subscan

`subscan` finds subdomains of a website by asking passive online sources
(passive DNS databases, certificate issuance logs, web archives, crawl
indexes and search APIs). Nothing is sent to the target itself unless you
ask for wildcard removal, in which case every found name is resolved over
DNS and names that resolve to the domain's wildcard addresses are dropped.

## Installation

```
pip install .
```

This installs the `subscan` command.

## Usage

Enumerate one or more domains:

```
subscan -d example.com
subscan -d example.com,example.org
```

Read domains from a file, one per line, or from standard input:

```
subscan -dL domains.txt
cat domains.txt | subscan
```

Results go to standard output; log messages and the banner go to standard
error.

Options (each long name also works with two dashes):

| Option | Meaning |
| --- | --- |
| `-d`, `-domain` | domains to enumerate (comma separated, repeatable) |
| `-dL`, `-list` | file with one domain per line |
| `-s`, `-sources` | comma separated list of sources to use |
| `-es`, `-exclude-sources` | sources to leave out |
| `-all` | use every source, including the ones not used by default |
| `-recursive` | use only sources that accept subdomains as input |
| `-m`, `-match` / `-f`, `-filter` | keep or drop names matching patterns, given inline or as a file; `*` is a wildcard |
| `-o`, `-output` | append results to a file |
| `-oD`, `-output-dir` | write one file per domain (`<domain>.txt` or `<domain>.json`) into a directory |
| `-oJ`, `-json` | write JSON lines instead of plain names |
| `-cs`, `-collect-sources` | list every source that reported each name |
| `-nW`, `-active` | resolve names and remove wildcard or dead ones |
| `-oI`, `-ip` | include the resolved IP (needs `-active`) |
| `-r`, `-rL`/`-rlist` | DNS resolvers to use, inline or from a file |
| `-t` | number of resolver threads (with `-active`) |
| `-rl`, `-rate-limit` | maximum HTTP requests per second (0 means unlimited) |
| `-proxy` | HTTP proxy for all requests |
| `-ei`, `-exclude-ip` | skip input lines that are IP addresses |
| `-timeout` | per-request timeout in seconds (default 30) |
| `-max-time` | total enumeration time per domain in minutes (default 10) |
| `-config` | YAML file of flag values, keyed by the long flag names |
| `-pc`, `-provider-config` | YAML file with API keys |
| `-ls`, `-list-sources` | show all sources; those marked `*` need keys |
| `-silent`, `-v`, `-nc`/`-no-color` | print only results, print verbose output, or disable colours |
| `-version` | show the version |

## Sources

| Source | Used by default | Accepts subdomains | Needs key |
| --- | --- | --- | --- |
| alienvault | yes | yes | no |
| anubis | yes | no | no |
| bufferover | yes | yes | yes |
| c99 | yes | no | yes |
| certspotter | yes | yes | yes |
| commoncrawl | no | no | no |
| dnsdumpster | yes | yes | no |
| fofa | yes | no | yes |
| hackertarget | yes | yes | no |
| passivetotal | yes | yes | yes |
| rapiddns | no | no | no |
| riddler | yes | no | no |
| securitytrails | yes | yes | yes |
| shodan | yes | no | yes |
| sonarsearch | no | yes | no |
| threatminer | yes | no | no |
| waybackarchive | no | no | no |

These are the only sources the package has. A source that needs a key and
has none configured is skipped silently.

## API keys

Put keys in the provider config file, a YAML mapping from source name to a
list of keys:

```yaml
shodan: [placeholder]
securitytrails: [placeholder]
```

fofa and passivetotal take two values joined with a colon, first the
account name and then the key; entries without exactly one colon are
ignored. When several keys are given, one is picked at random for each run.
The default file is `provider-config.yaml` in the directory returned by
`subscan.config.get_config_directory()`; pass another file with
`-pc`/`-provider-config`.

## Library use

```python
import sys

from subscan.options import Options
from subscan.runner import Runner

options = Options()
options.domain = ["example.com"]
runner = Runner(options)
runner.enumerate_single_domain("example.com", [sys.stdout])
```

- `subscan.passive.Agent` selects sources and runs them in parallel threads;
  `Agent.enumerate_subdomains()` yields `subscan.scraping.Result` objects.
- `subscan.scraping.Session` is the shared HTTP client with rate limiting.
- `subscan.resolve.Resolver` performs A lookups, and its
  `new_resolution_pool()` resolves hosts and filters wildcard addresses.
- `subscan.outputter.OutputWriter` renders results as plain text or JSON lines.
- `subscan.validate.validate_options()` checks options and compiles the
  match and filter patterns.

## Limitations

- HTTPS certificates of the sources are not verified.
- Only IPv4 (A) records are used for resolution and wildcard detection.
- Output order within a domain follows discovery order, not sorted order.

## Tests

```
pip install .[test]
pytest
```