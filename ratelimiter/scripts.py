# Lua source for the atomic rate check.
# Redis evaluates a script without interleaving other commands, so the
# read-decay-compare-write sequence below is serialized per key.
#
# KEYS[1]  bucket hash key
# ARGV[1]  current time, ms since the epoch
# ARGV[2]  decay rate, Hz
# ARGV[3]  burst ceiling
# ARGV[4]  operation count
#
# Returns {admitted, count}: admitted is 1 when state and TTL were written and 0
# when rejected (no writes). count is the post-decay count including op_count,
# whether or not it was stored.
RATE_CHECK_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local rate = tonumber(ARGV[2])
local burst = tonumber(ARGV[3])
local op_count = tonumber(ARGV[4])

local state = redis.call('HMGET', key, 'count', 'timestamp')
local count = op_count
local timestamp = now

if state[1] and state[2] then
    local prior_count = tonumber(state[1])
    local prior_timestamp = tonumber(state[2])
    local elapsed = math.max(now - prior_timestamp, 0)
    local periods = math.floor(elapsed * rate / 1000)
    count = math.max(prior_count - periods, 0) + op_count
    timestamp = math.max(now, prior_timestamp)
end

if count > burst then
    return {0, count}
end

redis.call('HSET', key, 'count', count, 'timestamp', timestamp)
redis.call('EXPIRE', key, math.ceil(count / rate))
return {1, count}
"""
