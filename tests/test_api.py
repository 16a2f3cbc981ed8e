from io import BytesIO

from fastapi.testclient import TestClient
from PIL import Image

from bracket_guidance.core.detector import Detector
from bracket_guidance.core.types import RawOutput
from bracket_guidance.main import app


def make_test_image_bytes() -> bytes:
    image = Image.new('RGB', (640, 480), color='white')
    buf = BytesIO()
    image.save(buf, format='JPEG')
    return buf.getvalue()


def detect_frame(client: TestClient):
    return client.post('/detect-frame', files={'image': ('frame.jpg', make_test_image_bytes(), 'image/jpeg')})


def test_health_ok():
    with TestClient(app) as client:
        response = client.get('/health')
    assert response.status_code == 200
    body = response.json()
    assert body['ok'] is True
    assert body['simulated'] is True
    assert body['intrinsics_set'] is True
    assert body['fixtures'] == 0
    assert body['weights_path'] is None


def test_detect_frame_returns_localized_teeth():
    with TestClient(app) as client:
        response = detect_frame(client)
    assert response.status_code == 200
    body = response.json()
    assert body['ok'] is True
    assert body['model'] == 'simulated-v1'
    assert sorted(tooth['tooth_id'] for tooth in body['teeth']) == ['11', '12', '13', '21', '22', '23']
    for tooth in body['teeth']:
        assert tooth['position']['z'] > 0
        assert len(tooth['landmarks']) == 5


def test_detect_rejects_misaligned_buffer():
    with TestClient(app) as client:
        response = client.post('/detect', json={'output': [0.5] * 7, 'image_width': 640, 'image_height': 480})
    assert response.status_code == 422
    body = response.json()
    assert body['ok'] is False
    assert body['error'] == 'BUFFER_MISALIGNED'
    assert body['details']['complete_slots'] == 0


def test_fixture_flow_against_detected_tooth():
    with TestClient(app) as client:
        detect_frame(client)
        created = client.post('/fixtures', json={'fixture_id': 'b1', 'tooth_id': '11'})
        assert created.status_code == 201
        assert created.json()['scale'] == 4.0

        feedback = client.post('/fixtures/b1/feedback')
        assert feedback.json()['quality'] == 'PERFECT'

        client.post('/fixtures/b1/move', json={'dx': 0.0005})
        feedback = client.post('/fixtures/b1/feedback')
        assert feedback.json()['quality'] == 'GOOD'
        assert feedback.json()['guidance_text'] == 'Move 0.5mm mesial'

        scaled = client.post('/fixtures/b1/scale', json={'factor': 3.0})
        assert scaled.json()['scale'] == 8.0
        rotated = client.post('/fixtures/b1/rotate', json={'dx': 370.0})
        assert rotated.json()['rotation']['x'] == 10.0
        hidden = client.post('/fixtures/b1/visibility', json={'visible': False})
        assert hidden.json()['visible'] is False

        listing = client.get('/feedback')
        assert [row['fixture_id'] for row in listing.json()] == ['b1']


def test_fixture_for_undetected_tooth_is_rejected():
    with TestClient(app) as client:
        response = client.post('/fixtures', json={'fixture_id': 'b1', 'tooth_id': '47'})
    assert response.status_code == 409
    assert response.json()['error'] == 'TOOTH_NOT_DETECTED'


def test_scale_requires_exactly_one_argument():
    with TestClient(app) as client:
        client.post('/fixtures', json={'fixture_id': 'b1', 'position': {'x': 0.0, 'y': 0.0, 'z': 0.05}})
        response = client.post('/fixtures/b1/scale', json={'factor': 2.0, 'size_mm': 5.0})
    assert response.status_code == 400
    assert response.json()['error'] == 'INVALID_ARGUMENT'


def test_unknown_fixture_is_not_found():
    with TestClient(app) as client:
        response = client.post('/fixtures/ghost/rotate', json={'dx': 10.0})
    assert response.status_code == 404
    assert response.json()['ok'] is False


def test_submitted_frame_is_published_by_worker():
    with TestClient(app) as client:
        submitted = client.post('/frames', files={'image': ('frame.jpg', make_test_image_bytes(), 'image/jpeg')})
        assert submitted.json()['accepted'] is True
        assert app.state.worker.wait_idle(5.0)
        response = client.get('/teeth')
    assert len(response.json()) == 6


class MisalignedDetector(Detector):
    @property
    def model_id(self) -> str:
        return 'misaligned'

    def run(self, image) -> RawOutput:
        return RawOutput(buffer=[0.5] * 7, shape=None, image_size=image.size, model_id=self.model_id, latency_ms=1)


def test_background_decode_failure_is_reported_in_frame_status():
    with TestClient(app) as client:
        app.state.pipeline.detector = MisalignedDetector()
        submitted = client.post('/frames', files={'image': ('frame.jpg', make_test_image_bytes(), 'image/jpeg')})
        assert app.state.worker.wait_idle(5.0)
        response = client.get('/frames/status')

    assert submitted.json()['generation'] == 1
    body = response.json()
    assert body['published'] == 0
    assert body['last_result_generation'] is None
    assert body['last_error']['generation'] == 1
    assert body['last_error']['error'] == 'BUFFER_MISALIGNED'
    assert body['last_error']['details']['complete_slots'] == 0


def test_frame_status_tracks_published_passes():
    with TestClient(app) as client:
        client.post('/frames', files={'image': ('frame.jpg', make_test_image_bytes(), 'image/jpeg')})
        assert app.state.worker.wait_idle(5.0)
        response = client.get('/frames/status')

    body = response.json()
    assert body['published'] == 1
    assert body['last_result_generation'] == 1
    assert body['last_error'] is None
