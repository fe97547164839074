"""
Posts - in-memory repository and routes.
"""

from typing import Dict, List

from starlette.responses import JSONResponse

from aviary import app_plugin, service_plugin


class InMemoryPostsRepository:
    def __init__(self):
        self._posts: List[Dict] = [{"id": 1, "title": "my post", "author": "admin"}]

    def find_all(self) -> List[Dict]:
        return list(self._posts)

    def create(self, title: str, author: str) -> Dict:
        post = {"id": len(self._posts) + 1, "title": title, "author": author}
        self._posts.append(post)
        return post


def create_posts_repository_plugin():
    return service_plugin("posts-repository", lambda deps: InMemoryPostsRepository())


def create_posts_routes(posts_repository, current_user):
    def configure(app, deps, options):
        repo = deps.services.posts
        current = deps.scoped_services.current_user

        @app.get("/")
        async def list_posts(request):
            if await current.get(request) is None:
                return JSONResponse({"message": "Unauthorized"}, status_code=401)
            return repo.find_all()

        @app.post("/")
        async def create_post(request):
            user = await current.get(request)
            if user is None:
                return JSONResponse({"message": "Unauthorized"}, status_code=401)

            body = await request.json()
            title = str(body.get("title", "")).strip()
            if not title:
                return JSONResponse({"message": "title is required"}, status_code=400)
            return JSONResponse(repo.create(title, user["username"]), status_code=201)

    return app_plugin(
        "posts-routes",
        services={"posts": posts_repository},
        scoped_services={"current_user": current_user},
        options={"prefix": "/posts"},
        configure=configure,
    )
