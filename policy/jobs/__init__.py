"""
policy/jobs - CLI entrypoints.

- run_agent: the long-running policy execution agent
"""
