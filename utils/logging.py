import logging
import logging.handlers
import json
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any
from fastapi import Request


class ServiceLogger:
    """Request and AI-call logger with rotating file output"""

    def __init__(self,
                 log_file: str = "logs/app.log",
                 max_file_size: int = 10 * 1024 * 1024,  # 10MB
                 backup_count: int = 5,
                 log_level: str = "INFO"):

        self.max_file_size = max_file_size
        self.backup_count = backup_count
        self.logger = logging.getLogger("quiz_service")

        # Request statistics
        self.stats = {
            "total_requests": 0,
            "failed_requests": 0,
            "ai_requests": 0,
            "ai_total_ms": 0.0,
            "start_time": time.time()
        }

        self.configure(log_file, log_level)

    def configure(self, log_file: str, log_level: str = "INFO"):
        """(Re)attach file and console handlers"""
        self.log_file = log_file
        self.logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Remove existing handlers to avoid duplicates
        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=self.max_file_size,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        console_handler = logging.StreamHandler()

        formatter = logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)-20s | %(funcName)-15s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        file_handler.setFormatter(formatter)
        console_handler.setFormatter(formatter)

        self.logger.addHandler(file_handler)
        self.logger.addHandler(console_handler)

        self.logger.info(f"📁 Logging to {log_file} (level {log_level.upper()})")

    def log_request_start(self, request: Request, endpoint: str) -> Dict[str, Any]:
        """Log the start of a request with details"""
        client_ip = request.client.host if request.client else "unknown"
        user_agent = request.headers.get("user-agent", "unknown")

        request_info = {
            "endpoint": endpoint,
            "method": request.method,
            "client_ip": client_ip,
            "user_agent": user_agent[:100],
            "timestamp": datetime.now().isoformat()
        }

        self.logger.info(f"🔵 REQUEST START | {endpoint} | IP: {client_ip}")
        return request_info

    def log_request_end(self, request_info: Dict[str, Any], duration_ms: float, status_code: int = 200):
        """Log the end of a request with timing"""
        self.stats["total_requests"] += 1
        if status_code >= 400:
            self.stats["failed_requests"] += 1

        status_emoji = "✅" if status_code < 400 else "❌"

        self.logger.info(
            f"{status_emoji} REQUEST END | {request_info['endpoint']} | "
            f"Duration: {duration_ms:.2f}ms | Status: {status_code}"
        )

    def log_ai_request(self, agent_type: str, detail: str, duration_ms: float):
        """Log one language model round trip"""
        self.stats["ai_requests"] += 1
        self.stats["ai_total_ms"] += duration_ms

        self.logger.info(
            f"🤖 AI REQUEST | {agent_type} | {detail} | Duration: {duration_ms:.2f}ms"
        )

    def log_error(self, error: Exception, endpoint: str, extra_context: Optional[Dict] = None):
        """Log errors with context"""
        context = f" | Context: {json.dumps(extra_context, default=str)}" if extra_context else ""

        self.logger.error(
            f"💥 ERROR | {endpoint} | {type(error).__name__}: {str(error)}{context}",
            exc_info=True
        )

    def get_stats(self) -> Dict[str, Any]:
        uptime_hours = (time.time() - self.stats["start_time"]) / 3600
        ai_requests = max(self.stats["ai_requests"], 1)

        return {
            "total_requests": self.stats["total_requests"],
            "failed_requests": self.stats["failed_requests"],
            "ai_requests": self.stats["ai_requests"],
            "ai_average_ms": round(self.stats["ai_total_ms"] / ai_requests, 2),
            "requests_per_hour": round(self.stats["total_requests"] / max(uptime_hours, 0.01), 2),
            "uptime_hours": round(uptime_hours, 2),
            "log_file": self.log_file,
        }

    def log_periodic_stats(self):
        stats = self.get_stats()

        self.logger.info(
            f"📊 PERIODIC STATS | Requests: {stats['total_requests']} | "
            f"Failed: {stats['failed_requests']} | AI calls: {stats['ai_requests']} | "
            f"AI avg: {stats['ai_average_ms']}ms | Uptime: {stats['uptime_hours']}h"
        )


# Global logger instance
service_logger = ServiceLogger(
    log_file=os.getenv("LOG_FILE", "logs/app.log"),
    log_level=os.getenv("LOG_LEVEL", "INFO"),
)


# Convenience functions for easy usage
def log_request_start(request: Request, endpoint: str):
    return service_logger.log_request_start(request, endpoint)

def log_request_end(request_info: Dict[str, Any], duration_ms: float, status_code: int = 200):
    service_logger.log_request_end(request_info, duration_ms, status_code)

def log_ai_request(agent_type: str, detail: str, duration_ms: float):
    service_logger.log_ai_request(agent_type, detail, duration_ms)

def log_error(error: Exception, endpoint: str, extra_context: Optional[Dict] = None):
    service_logger.log_error(error, endpoint, extra_context)

def get_stats():
    return service_logger.get_stats()

def log_periodic_stats():
    service_logger.log_periodic_stats()
