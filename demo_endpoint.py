"""
Quick demo script to run the API locally.

This script starts a local server and shows how to check record access.
"""

import uvicorn

if __name__ == "__main__":
    print("=" * 60)
    print("Starting Doula CRM Backend Demo")
    print("=" * 60)
    print()
    print("📌 API Endpoints:")
    print("   - Health Check:   GET  http://localhost:8000/health")
    print("   - Record Access:  GET  http://localhost:8000/records/Contact/<id>/access")
    print("   - Sharing Rules:  GET  http://localhost:8000/sharing-rules")
    print("   - API Docs:            http://localhost:8000/docs")
    print()
    print("🔐 Authentication:")
    print("   All endpoints (except /health) require:")
    print("   Authorization: Bearer <token>")
    print()
    print("📝 Test with curl:")
    print('   curl "http://localhost:8000/records/Contact/<id>/access?access_type=write" \\')
    print('     -H "Authorization: Bearer <token>"')
    print()
    print("=" * 60)
    print("Starting server on http://localhost:8000")
    print("Press Ctrl+C to stop")
    print("=" * 60)
    print()

    uvicorn.run(
        "backend.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info"
    )
