"""
Sample FastAPI service instrumented with the devscope capture middleware
Every request is measured and shipped to a collector on localhost
"""
from fastapi import FastAPI, HTTPException
from prometheus_client import Counter, generate_latest
from fastapi.responses import Response
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool
import logging
import random
import time

from devscope.capture.agent import CaptureMiddleware

# Same line format the devscope log browser parses
logging.basicConfig(
    level=logging.INFO,
    format='[%(asctime)s] local.%(levelname)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

# One shared in-memory database for every threadpool worker
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
with engine.begin() as conn:
    conn.execute(text("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)"))
    conn.execute(text("INSERT INTO users (name) VALUES ('ada'), ('grace'), ('linus')"))

app = FastAPI(title="devscope sample service", version="1.0.0")
app.add_middleware(CaptureMiddleware)

request_count = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['endpoint', 'status']
)


@app.get("/")
def root():
    """Health check endpoint"""
    request_count.labels(endpoint="/", status="200").inc()
    return {"status": "healthy", "service": "devscope-sample"}


@app.get("/api/users/{user_id}")
def get_user(user_id: int):
    """One query per request"""
    with engine.connect() as conn:
        row = conn.execute(text("SELECT id, name FROM users WHERE id = :id"), {"id": user_id}).first()

    if row is None:
        logger.error('User not found {"user_id": %d}', user_id)
        request_count.labels(endpoint="/api/users", status="404").inc()
        raise HTTPException(status_code=404, detail="User not found")

    request_count.labels(endpoint="/api/users", status="200").inc()
    return {"user_id": row.id, "name": row.name}


@app.get("/api/n-plus-one")
def n_plus_one():
    """Simulate an N+1 query pattern"""
    with engine.connect() as conn:
        ids = [r.id for r in conn.execute(text("SELECT id FROM users"))]
        names = [
            conn.execute(text("SELECT name FROM users WHERE id = :id"), {"id": i}).scalar()
            for i in ids
        ]
    request_count.labels(endpoint="/api/n-plus-one", status="200").inc()
    return {"names": names}


@app.get("/api/slow")
def slow_endpoint():
    """Simulate slow endpoint"""
    logger.warning("Slow endpoint accessed")
    time.sleep(random.uniform(0.2, 0.8))
    request_count.labels(endpoint="/api/slow", status="200").inc()
    return {"message": "This was slow"}


@app.get("/api/error")
def error_endpoint():
    """Simulate server error"""
    logger.error('Internal server error triggered {"error_type": "InternalServerError"}')
    request_count.labels(endpoint="/api/error", status="500").inc()
    raise HTTPException(status_code=500, detail="Internal server error")


@app.get("/metrics")
def metrics():
    """Expose Prometheus metrics"""
    return Response(content=generate_latest(), media_type="text/plain")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="127.0.0.1", port=8000)
