#!/usr/bin/env python3
"""
Mock upstream provider for local development and tests.

Serves JSONPlaceholder-shaped ``/todos``, ``/users`` and ``/users/{id}``
resources from deterministic in-memory data.
"""

import random
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

USER_COUNT = 10
TODO_COUNT = 200

app = FastAPI(title="GraphGate Mock Upstream", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def generate_users() -> List[Dict[str, Any]]:
    """Generate placeholder users with every contact field populated."""
    first_names = ["Leanne", "Ervin", "Clementine", "Patricia", "Chelsey",
                   "Dennis", "Kurtis", "Nicholas", "Glenna", "Clementina"]
    users = []
    for i in range(1, USER_COUNT + 1):
        name = first_names[(i - 1) % len(first_names)]
        users.append({
            "id": i,
            "name": f"{name} Mock",
            "username": name.lower(),
            "email": f"{name.lower()}@example.com",
            "phone": f"555-01{i:02d}",
            "website": f"{name.lower()}.example.org",
        })
    return users


def generate_todos(seed: int = 42) -> List[Dict[str, Any]]:
    """Generate placeholder todos owned by the generated users."""
    rng = random.Random(seed)
    verbs = ["write", "review", "ship", "plan", "fix", "document"]
    nouns = ["report", "release", "schema", "gateway", "tests", "roadmap"]
    todos = []
    for i in range(1, TODO_COUNT + 1):
        todos.append({
            "userId": (i - 1) // (TODO_COUNT // USER_COUNT) + 1,
            "id": i,
            "title": f"{rng.choice(verbs)} the {rng.choice(nouns)}",
            "completed": rng.random() < 0.4,
        })
    return todos


USER_DATA = generate_users()
TODO_DATA = generate_todos()


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


@app.get("/todos")
async def get_todos(limit: Optional[int] = Query(default=None, alias="_limit", ge=0)):
    """List todos, optionally truncated with ``_limit``."""
    return TODO_DATA if limit is None else TODO_DATA[:limit]


@app.get("/users")
async def get_users():
    """List every user."""
    return USER_DATA


@app.get("/users/{user_id}")
async def get_user(user_id: str):
    """Get a single user; 404 when the id is unknown."""
    user = next((u for u in USER_DATA if str(u["id"]) == user_id), None)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8080)
