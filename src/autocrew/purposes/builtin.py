"""Built-in purposes shipped with autocrew."""

from __future__ import annotations

from autocrew.agent.models import AgentRole as R

from .models import Purpose

_CORE = [R.REQUIREMENTS, R.ARCHITECT]
_TAIL = [R.TESTER, R.DOCS, R.SUMMARIZER]


def builtin_purposes() -> list[Purpose]:
    return [
        Purpose(
            id="web-development",
            name="Web Development",
            description="Full-stack web application development",
            category="Web",
            tech_stack={
                "backend": ["Go", "PostgreSQL", "Redis"],
                "frontend": ["React", "Next.js", "TypeScript", "TailwindCSS"],
                "infrastructure": ["Docker", "Nginx"],
                "testing": ["Jest", "Playwright", "Go testing"],
                "other": ["GitHub Actions", "ESLint", "Prettier"],
            },
            roles=[*_CORE, R.BACKEND, R.FRONTEND, R.TESTER, R.DEVOPS, R.DOCS, R.SUMMARIZER],
            prompts={R.BACKEND: "go_backend", R.FRONTEND: "react_frontend"},
            default_structure=[
                "backend/cmd/server",
                "backend/internal/handlers",
                "backend/internal/models",
                "backend/internal/database",
                "frontend/src/components",
                "frontend/src/pages",
                "frontend/src/styles",
                "frontend/public",
                "docker",
                "scripts",
                ".github/workflows",
            ],
        ),
        Purpose(
            id="game-development",
            name="Game Development",
            description="2D/3D game development with Unity or Godot",
            category="Game",
            tech_stack={"other": ["Unity", "C#", "Unity Test Framework"]},
            roles=[*_CORE, R.GAME, *_TAIL],
            prompts={R.GAME: "unity_game"},
            default_structure=[
                "Assets/Scripts",
                "Assets/Scenes",
                "Assets/Prefabs",
                "Assets/Materials",
                "Assets/Sprites",
                "Assets/Audio",
                "Assets/Tests",
            ],
        ),
        Purpose(
            id="ios-app",
            name="iOS App Development",
            description="Native iOS application development",
            category="Mobile",
            tech_stack={
                "frontend": ["Swift", "SwiftUI"],
                "database": ["CoreData", "SQLite"],
                "infrastructure": ["Firebase", "Xcode"],
                "testing": ["XCTest", "XCUITest"],
                "other": ["CocoaPods", "SPM"],
            },
            roles=[*_CORE, R.MOBILE, *_TAIL],
            prompts={R.MOBILE: "swift_ios"},
            default_structure=[
                "App/Sources/Views",
                "App/Sources/ViewModels",
                "App/Sources/Models",
                "App/Sources/Services",
                "App/Sources/Utilities",
                "App/Resources/Assets.xcassets",
                "App/Tests",
            ],
        ),
        Purpose(
            id="android-app",
            name="Android App Development",
            description="Native Android application development",
            category="Mobile",
            tech_stack={
                "frontend": ["Kotlin", "Jetpack Compose"],
                "database": ["Room", "SQLite"],
                "infrastructure": ["Firebase", "Gradle"],
                "testing": ["JUnit", "Espresso"],
                "other": ["Android Studio", "Kotlin Coroutines"],
            },
            roles=[*_CORE, R.MOBILE, *_TAIL],
            prompts={R.MOBILE: "kotlin_android"},
            default_structure=[
                "app/src/main/java/com/app",
                "app/src/main/java/com/app/ui",
                "app/src/main/java/com/app/data",
                "app/src/main/java/com/app/domain",
                "app/src/main/res/layout",
                "app/src/main/res/values",
                "app/src/test",
                "app/src/androidTest",
            ],
        ),
        Purpose(
            id="api-microservices",
            name="API / Microservices",
            description="REST/gRPC API and microservices architecture",
            category="Backend",
            tech_stack={
                "backend": ["Go", "gRPC", "Protocol Buffers"],
                "database": ["PostgreSQL", "Redis"],
                "infrastructure": ["Kubernetes", "Helm", "Docker", "kind"],
                "testing": ["Go testing", "Testcontainers"],
                "other": ["GitHub Actions", "Prometheus", "Grafana"],
            },
            roles=[*_CORE, R.BACKEND, R.TESTER, R.DEVOPS, R.DOCS, R.SUMMARIZER],
            prompts={R.BACKEND: "go_backend"},
            default_structure=[
                "services/auth/cmd/server",
                "services/auth/internal",
                "services/user/cmd/server",
                "services/user/internal",
                "pkg/proto",
                "pkg/shared",
                "deployments/k8s",
                "deployments/helm",
                "scripts",
                ".github/workflows",
            ],
        ),
        Purpose(
            id="cli-tool",
            name="CLI Tools",
            description="Command-line interface applications",
            category="CLI",
            tech_stack={"backend": ["Go"], "testing": ["Go testing"], "other": ["Cobra", "Viper", "GitHub Actions"]},
            roles=[*_CORE, R.BACKEND, *_TAIL],
            prompts={R.BACKEND: "cli_tool"},
            default_structure=["cmd", "internal/commands", "internal/config", "internal/utils", "tests"],
        ),
        Purpose(
            id="data-science",
            name="Data Science / AI Tools",
            description="Data analysis and machine learning applications",
            category="Data Science",
            tech_stack={
                "backend": ["Python", "FastAPI"],
                "frontend": ["Streamlit", "Plotly"],
                "database": ["PostgreSQL", "MongoDB"],
                "testing": ["pytest", "unittest"],
                "other": ["Poetry", "Jupyter", "pandas", "scikit-learn", "TensorFlow"],
            },
            roles=[*_CORE, R.BACKEND, R.FRONTEND, *_TAIL],
            prompts={R.BACKEND: "data_science"},
            default_structure=[
                "src/models",
                "src/data",
                "src/features",
                "src/visualization",
                "notebooks",
                "tests",
                "data/raw",
                "data/processed",
            ],
        ),
        Purpose(
            id="desktop-app",
            name="Desktop App",
            description="Cross-platform desktop application",
            category="Desktop",
            tech_stack={
                "backend": ["Node.js", "TypeScript"],
                "frontend": ["React", "Electron", "TypeScript"],
                "database": ["SQLite"],
                "testing": ["Jest", "Spectron"],
                "other": ["Electron Builder", "Webpack"],
            },
            roles=[*_CORE, R.BACKEND, R.FRONTEND, *_TAIL],
            prompts={R.BACKEND: "go_backend", R.FRONTEND: "react_frontend"},
            default_structure=[
                "src/main",
                "src/renderer/components",
                "src/renderer/pages",
                "src/shared",
                "resources",
                "build",
            ],
        ),
    ]
