"""
Built-in PostgreSQL samplers, expressed as declarative subsystems.

Provides:
- postgres/activity - pg_stat_activity connection states
- postgres/bgwriter - pg_stat_bgwriter checkpoint and buffer stats
- postgres/database - pg_stat_database per-database stats
- postgres/tables - pg_stat_user_tables (every database)
- postgres/indexes - pg_stat_user_indexes (every database)
- postgres/statements - pg_stat_statements (PG 13+)

Each sampler is compiled by the same compiler as user-defined subsystems.
"""

from typing import Any, Dict, Mapping

from ..model.subsystem import SubsystemDefinition, subsystems_from_dict


# Visit every connectable database
ALL_DATABASES = ".+"

MS_TO_SECONDS = 0.001


ACTIVITY: Dict[str, Any] = {
    "activity": {
        "query": """
            SELECT
                coalesce(usename, 'system') AS "user",
                coalesce(datname, 'global') AS database,
                coalesce(state, 'background') AS state,
                count(*) AS connections,
                coalesce(max(extract(epoch FROM clock_timestamp() - xact_start)), 0) AS max_xact_seconds
            FROM pg_stat_activity
            WHERE pid != pg_backend_pid()
            GROUP BY 1, 2, 3
        """,
        "metrics": [
            {"name": "connections_in_flight", "usage": "GAUGE",
             "labels": ["user", "database", "state"], "value": "connections",
             "description": "Number of backends grouped by user, database and state."},
            {"name": "max_xact_duration_seconds", "usage": "GAUGE",
             "labels": ["user", "database", "state"], "value": "max_xact_seconds",
             "description": "Age of the longest running transaction, in seconds."},
        ],
    },
}

BGWRITER: Dict[str, Any] = {
    "bgwriter": {
        "query": """
            SELECT
                checkpoints_timed, checkpoints_req,
                checkpoint_write_time, checkpoint_sync_time,
                buffers_checkpoint, buffers_clean, maxwritten_clean,
                buffers_backend, buffers_backend_fsync, buffers_alloc
            FROM pg_stat_bgwriter
        """,
        "metrics": [
            {"name": "checkpoints_total", "usage": "COUNTER",
             "labeled_values": {"checkpoint": ["checkpoints_timed/timed", "checkpoints_req/requested"]},
             "description": "Total number of checkpoints that have been performed."},
            {"name": "checkpoint_time_seconds_total", "usage": "COUNTER",
             "labeled_values": {"stage": ["checkpoint_write_time/write", "checkpoint_sync_time/sync"]},
             "factor": MS_TO_SECONDS,
             "description": "Total time spent in checkpoint processing, in seconds."},
            {"name": "buffers_written_total", "usage": "COUNTER",
             "labeled_values": {"type": [
                 "buffers_checkpoint/checkpointer", "buffers_clean/bgwriter", "buffers_backend/backend",
             ]},
             "description": "Total number of buffers written."},
            {"name": "maxwritten_clean_total", "usage": "COUNTER", "value": "maxwritten_clean",
             "description": "Total number of times the background writer stopped a cleaning scan "
                            "because it had written too many buffers."},
            {"name": "backend_fsync_total", "usage": "COUNTER", "value": "buffers_backend_fsync",
             "description": "Total number of times a backend had to execute its own fsync call."},
            {"name": "buffers_allocated_total", "usage": "COUNTER", "value": "buffers_alloc",
             "description": "Total number of buffers allocated."},
        ],
    },
}

DATABASE: Dict[str, Any] = {
    "database": {
        "query": """
            SELECT
                datname AS database,
                xact_commit, xact_rollback,
                blks_read, blks_hit,
                tup_returned, tup_fetched, tup_inserted, tup_updated, tup_deleted,
                conflicts, temp_files, temp_bytes, deadlocks,
                blk_read_time, blk_write_time,
                CASE WHEN has_database_privilege(datid, 'CONNECT')
                     THEN pg_database_size(datid) END AS size_bytes
            FROM pg_stat_database
            WHERE datname IS NOT NULL
        """,
        "metrics": [
            {"name": "xacts_total", "usage": "COUNTER", "labels": ["database"],
             "labeled_values": {"status": ["xact_commit/commit", "xact_rollback/rollback"]},
             "description": "Total number of transactions by status."},
            {"name": "blocks_total", "usage": "COUNTER", "labels": ["database"],
             "labeled_values": {"access": ["blks_read/read", "blks_hit/hit"]},
             "description": "Total number of disk blocks read or found in shared buffers."},
            {"name": "tuples_total", "usage": "COUNTER", "labels": ["database"],
             "labeled_values": {"op": [
                 "tup_returned/returned", "tup_fetched/fetched", "tup_inserted/inserted",
                 "tup_updated/updated", "tup_deleted/deleted",
             ]},
             "description": "Total number of rows processed by operation."},
            {"name": "conflicts_total", "usage": "COUNTER", "labels": ["database"], "value": "conflicts",
             "description": "Total number of queries canceled due to conflicts with recovery."},
            {"name": "temp_files_total", "usage": "COUNTER", "labels": ["database"], "value": "temp_files",
             "description": "Total number of temporary files created by queries."},
            {"name": "temp_bytes_total", "usage": "COUNTER", "labels": ["database"], "value": "temp_bytes",
             "description": "Total amount of data written to temporary files by queries."},
            {"name": "deadlocks_total", "usage": "COUNTER", "labels": ["database"], "value": "deadlocks",
             "description": "Total number of deadlocks detected."},
            {"name": "blk_time_seconds_total", "usage": "COUNTER", "labels": ["database"],
             "labeled_values": {"type": ["blk_read_time/read", "blk_write_time/write"]},
             "factor": MS_TO_SECONDS,
             "description": "Time spent reading and writing data file blocks by backends, in seconds."},
            {"name": "size_bytes", "usage": "GAUGE", "labels": ["database"], "value": "size_bytes",
             "description": "Total size of the database, in bytes."},
        ],
    },
}

TABLES: Dict[str, Any] = {
    "table": {
        "databases": ALL_DATABASES,
        "query": """
            SELECT
                s1.schemaname AS schema, s1.relname AS "table",
                seq_scan, seq_tup_read, idx_scan,
                n_tup_ins, n_tup_upd, n_tup_del, n_tup_hot_upd,
                n_live_tup, n_dead_tup,
                vacuum_count, autovacuum_count, analyze_count, autoanalyze_count,
                heap_blks_read, heap_blks_hit,
                pg_relation_size(s1.relid) AS size_bytes
            FROM pg_stat_user_tables s1
            JOIN pg_statio_user_tables s2 USING (relid)
            WHERE NOT EXISTS (
                SELECT 1 FROM pg_locks
                WHERE relation = s1.relid AND mode = 'AccessExclusiveLock' AND granted
            )
        """,
        "metrics": [
            {"name": "seq_scan_total", "usage": "COUNTER", "labels": ["schema", "table"], "value": "seq_scan",
             "description": "Total number of sequential scans initiated on the table."},
            {"name": "seq_tup_read_total", "usage": "COUNTER", "labels": ["schema", "table"], "value": "seq_tup_read",
             "description": "Total number of live rows fetched by sequential scans."},
            {"name": "idx_scan_total", "usage": "COUNTER", "labels": ["schema", "table"], "value": "idx_scan",
             "description": "Total number of index scans initiated on the table."},
            {"name": "tuples_modified_total", "usage": "COUNTER", "labels": ["schema", "table"],
             "labeled_values": {"op": [
                 "n_tup_ins/inserted", "n_tup_upd/updated", "n_tup_del/deleted", "n_tup_hot_upd/hot_updated",
             ]},
             "description": "Total number of rows modified by operation."},
            {"name": "tuples", "usage": "GAUGE", "labels": ["schema", "table"],
             "labeled_values": {"type": ["n_live_tup/live", "n_dead_tup/dead"]},
             "description": "Estimated number of live and dead rows."},
            {"name": "maintenance_total", "usage": "COUNTER", "labels": ["schema", "table"],
             "labeled_values": {"type": [
                 "vacuum_count/vacuum", "autovacuum_count/autovacuum",
                 "analyze_count/analyze", "autoanalyze_count/autoanalyze",
             ]},
             "description": "Total number of maintenance operations performed on the table."},
            {"name": "blocks_total", "usage": "COUNTER", "labels": ["schema", "table"],
             "labeled_values": {"access": ["heap_blks_read/read", "heap_blks_hit/hit"]},
             "description": "Total number of table blocks read or found in shared buffers."},
            {"name": "size_bytes", "usage": "GAUGE", "labels": ["schema", "table"], "value": "size_bytes",
             "description": "Total size of the table, in bytes."},
        ],
    },
}

INDEXES: Dict[str, Any] = {
    "index": {
        "databases": ALL_DATABASES,
        "query": """
            SELECT
                s1.schemaname AS schema, s1.relname AS "table", s1.indexrelname AS index,
                idx_scan, idx_tup_read, idx_tup_fetch, idx_blks_read, idx_blks_hit,
                pg_relation_size(s1.indexrelid) AS size_bytes
            FROM pg_stat_user_indexes s1
            JOIN pg_statio_user_indexes s2 USING (indexrelid)
            WHERE NOT EXISTS (
                SELECT 1 FROM pg_locks
                WHERE relation = s1.indexrelid AND mode = 'AccessExclusiveLock' AND granted
            )
        """,
        "metrics": [
            {"name": "scans_total", "usage": "COUNTER", "labels": ["schema", "table", "index"], "value": "idx_scan",
             "description": "Total number of index scans initiated on the index."},
            {"name": "tuples_total", "usage": "COUNTER", "labels": ["schema", "table", "index"],
             "labeled_values": {"tuples": ["idx_tup_read/read", "idx_tup_fetch/fetched"]},
             "description": "Total number of index entries returned or live rows fetched by index scans."},
            {"name": "blocks_total", "usage": "COUNTER", "labels": ["schema", "table", "index"],
             "labeled_values": {"access": ["idx_blks_read/read", "idx_blks_hit/hit"]},
             "description": "Total number of index blocks read or found in shared buffers."},
            {"name": "size_bytes", "usage": "GAUGE", "labels": ["schema", "table", "index"], "value": "size_bytes",
             "description": "Total size of the index, in bytes."},
        ],
    },
}


def statements_subsystems(no_sensitive_data: bool = False) -> Dict[str, Any]:
    """pg_stat_statements subsystem; query texts are left out when redacting."""
    labels = ["database", "user", "queryid"]
    query_column = ""
    if not no_sensitive_data:
        labels.append("query")
        query_column = "left(p.query, 256) AS query,"

    return {
        "statements": {
            "query": f"""
                SELECT
                    d.datname AS database, r.rolname AS "user", p.queryid, {query_column}
                    p.calls, p.rows,
                    p.total_exec_time, p.total_plan_time,
                    p.shared_blks_hit, p.shared_blks_read, p.shared_blks_dirtied, p.shared_blks_written
                FROM pg_stat_statements p
                JOIN pg_roles r ON p.userid = r.oid
                JOIN pg_database d ON p.dbid = d.oid
            """,
            "metrics": [
                {"name": "calls_total", "usage": "COUNTER", "labels": labels, "value": "calls",
                 "description": "Total number of times the statement was executed."},
                {"name": "rows_total", "usage": "COUNTER", "labels": labels, "value": "rows",
                 "description": "Total number of rows retrieved or affected by the statement."},
                {"name": "time_seconds_total", "usage": "COUNTER", "labels": labels,
                 "labeled_values": {"mode": ["total_exec_time/executing", "total_plan_time/planning"]},
                 "factor": MS_TO_SECONDS,
                 "description": "Time spent planning and executing the statement, in seconds."},
                {"name": "shared_blocks_total", "usage": "COUNTER", "labels": labels,
                 "labeled_values": {"access": [
                     "shared_blks_hit/hit", "shared_blks_read/read",
                     "shared_blks_dirtied/dirtied", "shared_blks_written/written",
                 ]},
                 "description": "Total number of shared blocks touched by the statement."},
            ],
        },
    }


def builtin_subsystems(no_sensitive_data: bool = False) -> Dict[str, Dict[str, SubsystemDefinition]]:
    """
    Built-in samplers and their subsystems.

    Returns:
        Mapping of sampler name -> {subsystem name: definition}
    """
    raw: Mapping[str, Mapping[str, Any]] = {
        "postgres/activity": ACTIVITY,
        "postgres/bgwriter": BGWRITER,
        "postgres/database": DATABASE,
        "postgres/tables": TABLES,
        "postgres/indexes": INDEXES,
        "postgres/statements": statements_subsystems(no_sensitive_data),
    }
    return {name: subsystems_from_dict(body) for name, body in raw.items()}


def merged_builtins(samplers: Mapping[str, Mapping[str, SubsystemDefinition]]) -> Dict[str, SubsystemDefinition]:
    """Flatten sampler groups into one subsystem map for collision resolution."""
    merged: Dict[str, SubsystemDefinition] = {}
    for subsystems in samplers.values():
        merged.update(subsystems)
    return merged
