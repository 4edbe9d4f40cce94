"""Redis Lua scripts for shared-store rate limiting.

Each script runs as one atomic unit on the Redis server, so concurrent
callers from different processes cannot interleave a read and a write
of the same key.
"""

# Fixed window counter: increment, and arm the window expiry on the first hit.
# KEYS[1]: counter key
# ARGV[1]: window length in milliseconds
# Returns the counter value after the increment.
FIXED_WINDOW_SCRIPT = """
    local value = redis.call('INCR', KEYS[1])
    if value == 1 then
        redis.call('PEXPIRE', KEYS[1], tonumber(ARGV[1]))
    end
    return value
"""

# Sliding window log: add, evict, count, and undo the add on rejection.
# KEYS[1]: sorted set of admission timestamps
# ARGV[1]: score (caller's now in epoch milliseconds)
# ARGV[2]: unique member for this attempt
# ARGV[3]: exclusive lower bound kept, e.g. "(1700000000000"
# ARGV[4]: limit
# ARGV[5]: key TTL in milliseconds
# Returns the cardinality including this attempt. Scores and bounds are
# passed through as strings so Lua never reformats an epoch timestamp.
SLIDING_WINDOW_SCRIPT = """
    redis.call('ZADD', KEYS[1], ARGV[1], ARGV[2])
    redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', ARGV[3])
    local count = redis.call('ZCARD', KEYS[1])
    if count > tonumber(ARGV[4]) then
        redis.call('ZREM', KEYS[1], ARGV[2])
    end
    redis.call('PEXPIRE', KEYS[1], tonumber(ARGV[5]))
    return count
"""

# Token bucket: lazy refill, then consume, written back in one step.
# KEYS[1]: bucket hash (fields: tokens, last)
# ARGV[1]: capacity
# ARGV[2]: refill rate in tokens per millisecond
# ARGV[3]: caller's now in whole epoch milliseconds
# ARGV[4]: tokens requested
# ARGV[5]: key TTL in milliseconds
# Returns {allowed (1/0), tokens-after as string}. Values are formatted with
# %.17g: Redis truncates Lua numbers to integers in replies, and tostring()
# keeps only 14 significant digits.
TOKEN_BUCKET_SCRIPT = """
    local capacity = tonumber(ARGV[1])
    local refill_per_ms = tonumber(ARGV[2])
    local now = tonumber(ARGV[3])
    local requested = tonumber(ARGV[4])
    local ttl = tonumber(ARGV[5])

    local data = redis.call('HMGET', KEYS[1], 'tokens', 'last')
    local tokens = tonumber(data[1])
    local last = tonumber(data[2])

    if tokens == nil then tokens = capacity end
    if last == nil then last = now end

    -- Callers on other hosts may lag slightly; never refill backwards
    local delta = now - last
    if delta > 0 then
        tokens = math.min(capacity, tokens + delta * refill_per_ms)
        last = now
    end

    local allowed = 0
    if tokens >= requested then
        tokens = tokens - requested
        allowed = 1
    end

    local encoded = string.format('%.17g', tokens)
    redis.call('HSET', KEYS[1], 'tokens', encoded, 'last', string.format('%.17g', last))
    redis.call('PEXPIRE', KEYS[1], ttl)
    return {allowed, encoded}
"""
