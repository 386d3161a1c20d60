from core.attendance.locks import KeyedLock
from core.attendance.service import (
    AttendanceService, CheckInResult, CheckOutResult, FinalizeResult
)

__all__ = ['AttendanceService', 'CheckInResult', 'CheckOutResult', 'FinalizeResult', 'KeyedLock']
