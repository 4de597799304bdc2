"""Example application exported as a cloud function.

Point the runtime at ``examples.hello.app.main``, or run it locally with
``python scripts/local_server.py examples.hello.app:main``.
"""

import json

import httpx

from core.app import FetchApp, json_response
from server.adapters import serverless_app
from server.errors import HTTPException

app = FetchApp()


@app.get("/")
async def index(request):
    return json_response({"message": "Hello from the cloud function!"})


@app.get("/users/:id")
async def get_user(request, id):
    return json_response({"id": id, "name": f"User {id}"})


@app.post("/api/data")
async def post_data(request):
    try:
        data = json.loads(request.content or b"null")
    except json.JSONDecodeError:
        raise HTTPException(400, "Request body must be valid JSON")
    return json_response({"success": True, "data": data})


@app.get("/binary")
def binary(request):
    return httpx.Response(
        200,
        content=b"Binary data would go here",
        headers={"Content-Type": "application/octet-stream"},
    )


main = serverless_app(
    app,
    logging=True,
    timeout=30000,
    basePath="",
    cors=True,
    binaryMimeTypes=[
        "application/octet-stream",
        "image/jpeg",
        "image/png",
        "application/pdf",
    ],
)
