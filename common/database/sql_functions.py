"""
DB 세션 시계 기준 시각 SQL 함수
- 카드 예약(reserved_at)은 외부에서 DB NOW()로 기록되므로 비교 기준도 DB 시계를 사용
- PostgreSQL: LOCALTIMESTAMP (naive timestamp 컬럼과 같은 세션 시간대)
- SQLite(테스트): strftime(..., 'now', 'localtime')
"""
from sqlalchemy import DateTime, Integer, literal
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import FunctionElement

class db_local_timestamp(FunctionElement):
    """
    DB 현재 시각에서 seconds_ago초 뺀 시각

    Args:
        seconds_ago: 현재 시각에서 뺄 초 (기본 0 = 현재 시각)
    """
    type = DateTime()
    name = "db_local_timestamp"
    inherit_cache = True

    def __init__(self, seconds_ago: int = 0):
        super().__init__(literal(int(seconds_ago), Integer()))

@compiles(db_local_timestamp)
def _compile_local_timestamp(element, compiler, **kw):
    seconds = compiler.process(element.clauses, **kw)
    return f"(LOCALTIMESTAMP - INTERVAL '1 second' * {seconds})"

@compiles(db_local_timestamp, "sqlite")
def _compile_local_timestamp_sqlite(element, compiler, **kw):
    seconds = compiler.process(element.clauses, **kw)
    return f"strftime('%Y-%m-%d %H:%M:%f', 'now', 'localtime', '-' || ({seconds}) || ' seconds')"
