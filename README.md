# topicbus

`topicbus` is an in-process publish/subscribe bus organised by topic
("subject"). Publishers never wait for subscribers: every subscriber has its
own delivery thread, so a slow handler cannot hold up a fast one or the
publisher. Messages on a subject reach each subscriber in the order they were
published.

It also provides a transport-independent service layer with request
validation and status codes, and a YAML configuration loader for a server
built on top of the bus.

Install with `pip install .` (add `.[test]` for pytest).

## The bus: `topicbus.subpub`

```python
from topicbus.subpub import SubPub, SubPubClosedError

bus = SubPub()

def on_created(msg):
    print("got", msg)

subscription = bus.subscribe("notifications.user.created", on_created)
bus.publish("notifications.user.created", "User John Doe created")

subscription.unsubscribe()   # safe to call more than once
print(subscription.active)   # False

bus.close(5.0)               # wait up to 5 seconds for pending deliveries
```

`SubPub` is also a context manager; leaving the `with` block calls `close()`
with no timeout.

Points to know:

- A subscriber only sees messages published after it subscribed.
- Publishing to a subject with no subscribers is fine; the message is simply
  not delivered to anyone.
- Messages may be any Python object.
- An exception raised by a callback is logged (logger `topicbus.subpub`) and
  delivery to that subscriber carries on with the next message.
- `close(timeout=None)` stops new publishing and subscribing, lets
  subscribers drain what was already published, and waits for their delivery
  threads to finish. With a timeout, it raises `TimeoutError` if they have
  not finished in time; delivery then continues in the background. With no
  timeout it waits as long as needed.
- After `close`, `publish` and `subscribe` raise `SubPubClosedError`.

## The underlying queue: `topicbus.queue`

`SelfCleaningQueue` is the per-subject queue the bus is built on. Iterators
obtained with `end()` start at the current tail, so they yield only values
pushed afterwards. They block until a new value is pushed and stop when the
queue is closed. Values that every iterator has passed are released
automatically.

```python
from topicbus.queue import SelfCleaningQueue, QueueClosedError

q = SelfCleaningQueue()
reader = q.end()
q.push("a")
q.push("b")
q.close()

print(list(reader))   # ['a', 'b']
print(q.closed)       # True
```

`close()` may be called more than once. Pushing to, or calling `end()` on, a
closed queue raises `QueueClosedError`.

## The service layer: `topicbus.service`

`PubSubService(log, subpub)` wraps a bus with the checks a network front end
needs. Keys must be non-empty; violations and bus failures are raised as
`StatusError`, whose `code` is a `StatusCode` such as
`StatusCode.INVALID_ARGUMENT` or `StatusCode.INTERNAL`.

```python
from topicbus.service import PubSubService, StatusCode, StatusError, setup_logger
from topicbus.subpub import SubPub

service = PubSubService(setup_logger("info"), SubPub())
service.publish("k1", "d1")

try:
    service.publish("", "d2")
except StatusError as err:
    assert err.code is StatusCode.INVALID_ARGUMENT
```

`subscribe(key, send, cancelled)` blocks, calling `send(data)` for every
string published on `key`, until the `threading.Event` `cancelled` is set;
it then unsubscribes from the bus and returns.

- Events are buffered per subscriber, up to 128; when the buffer is full, new
  events are dropped with a warning rather than blocking the bus.
- Messages that are not strings are logged as errors and skipped.
- If `send` raises `EOFError`, `ConnectionError` or a `StatusError` with code
  `UNAVAILABLE`, the client is taken to be gone and `subscribe` returns
  normally. Any other exception from `send` is raised as a `StatusError` with
  code `INTERNAL`.

`setup_logger(level)` returns the logger `topicbus.server`, writing to
standard output. It accepts `debug`, `info`, `warn` or `error`; anything else
means `info`.

## Configuration: `topicbus.config`

```yaml
grpc_server:
  port: "50051"
  shutdown_timeout: 5s
logger:
  level: info
```

```python
from topicbus.config import ConfigError, load_config

config = load_config("")   # "" or None: $CONFIG_PATH, else ./configs/config.yaml
print(config.grpc_server.port, config.grpc_server.shutdown_timeout, config.logger.level)
```

The result is a `Config` dataclass holding a `GRPCServerConfig` (`port`,
`shutdown_timeout` in seconds as a float) and a `LoggerConfig` (`level`).

`shutdown_timeout` takes duration strings such as `500ms`, `5s` or `1m30s`,
parsed by `parse_duration`, which accepts an optional sign and the units
`ns`, `us` (or `µs`), `ms`, `s`, `m` and `h`, and returns seconds. A bare
integer is read as nanoseconds.

The port and logger level must be set and the shutdown timeout must be
positive. A missing file, invalid YAML, a malformed value or a failed check
raises `ConfigError` (a subclass of `ValueError`).

## What it does not do

The package has no network transport. It contains no gRPC server or client,
and installs no command to run one: `PubSubService` and `load_config` supply
the request handling and settings such a server would use, but listening on
the configured port, signal handling and graceful shutdown are left to the
code that embeds them.