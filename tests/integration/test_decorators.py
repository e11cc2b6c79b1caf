"""
Flask integration tests for the validate_request decorator.

Routes are registered on the ``app`` fixture and exercised through the Flask
test client.
"""

import asyncio

import pytest
from flask import jsonify

from chainvalidator.engine.chain import body, check, headers, params
from chainvalidator.engine.executor import ChainExecutor
from chainvalidator.utils.decorators import matched_data, validate_request, validation_result

pytestmark = pytest.mark.integration


def report_response(status=200):
    report = validation_result()
    if not report.is_empty():
        return jsonify(report.to_dict()), 400
    return jsonify(matched_data()), status


@pytest.fixture
def routes(app, metrics):
    """Register the test routes."""

    @app.route('/users', methods=['POST'])
    @validate_request(
        body('email').trim().is_email().normalize_email(),
        body('age').optional().is_int(min=0).to_int(),
    )
    def create_user():
        return report_response(201)

    @app.route('/search')
    @validate_request({'q': {'in': 'query', 'notEmpty': {'errorMessage': 'Query required'}}},
                      abort_on_error=True)
    def search():
        return jsonify({'results': []})

    @app.route('/secure')
    @validate_request(headers('X-Api-Key').equals('secret'))
    def secure():
        return report_response()

    @app.route('/items/<item_id>')
    @validate_request(params('item_id').is_uuid())
    def get_item(item_id):
        return report_response()

    @app.route('/anywhere', methods=['GET', 'POST'])
    @validate_request(check('token').not_empty())
    def anywhere():
        return report_response()

    @app.route('/locale')
    @validate_request(
        check('name').custom(lambda value, context: False,
                             message=lambda value, context: f'invalid:{context.locale}:{context.metadata["tenant"]}'),
        metadata=lambda: {'tenant': 'acme'},
    )
    def locale():
        return report_response()

    async def slow(value, context):
        await asyncio.sleep(1)
        return True

    @app.route('/slow')
    @validate_request(check('a').custom(slow), executor=ChainExecutor(timeout=0.05, metrics=metrics))
    def slow_route():
        return report_response()

    return app


class TestValidateRequest:
    """Validation of request bodies, queries, headers and params."""

    def test_valid_json_body(self, client, routes):
        """Test that sanitized values are exposed through matched_data."""
        response = client.post('/users', json={'email': ' Ada@Example.com ', 'age': '36'})

        assert response.status_code == 201
        assert response.get_json() == {'body': {'email': 'ada@example.com', 'age': 36}}

    def test_invalid_json_body(self, client, routes):
        response = client.post('/users', json={'email': 'nope', 'age': '-1'})

        assert response.status_code == 400
        errors = response.get_json()['errors']
        assert [(error['location'], error['path'], error['rule']) for error in errors] == [
            ('body', 'email', 'is_email'),
            ('body', 'age', 'is_int'),
        ]

    def test_optional_field_left_out(self, client, routes):
        response = client.post('/users', json={'email': 'ada@example.com'})

        assert response.status_code == 201
        assert response.get_json() == {'body': {'email': 'ada@example.com'}}

    def test_form_body(self, client, routes):
        response = client.post('/users', data={'email': 'ada@example.com', 'age': '5'})

        assert response.status_code == 201
        assert response.get_json()['body']['age'] == 5

    def test_schema_with_abort_on_error(self, client, routes):
        """Test that abort_on_error renders a 400 through the error handler."""
        response = client.get('/search?q=')

        assert response.status_code == 400
        payload = response.get_json()
        assert payload['error']['code'] == 'REQUEST_VALIDATION_FAILED'
        assert payload['errors'][0]['message'] == 'Query required'
        assert payload['errors'][0]['location'] == 'query'

        assert client.get('/search?q=books').status_code == 200

    def test_headers(self, client, routes):
        assert client.get('/secure').status_code == 400

        response = client.get('/secure', headers={'X-Api-Key': 'secret'})
        assert response.status_code == 200
        assert response.get_json() == {'headers': {'x-api-key': 'secret'}}

    def test_route_params(self, client, routes):
        assert client.get('/items/not-a-uuid').status_code == 400
        assert client.get('/items/123e4567-e89b-12d3-a456-426614174000').status_code == 200

    def test_check_searches_every_location(self, client, routes):
        """Test that chains without locations find fields anywhere in the request."""
        assert client.get('/anywhere?token=abc').get_json() == {'query': {'token': 'abc'}}
        assert client.post('/anywhere', json={'token': 'abc'}).get_json() == {'body': {'token': 'abc'}}

        response = client.get('/anywhere')
        assert response.status_code == 400
        assert response.get_json()['errors'][0]['location'] == 'body'

    def test_locale_and_metadata(self, client, routes):
        response = client.get('/locale?name=x', headers={'Accept-Language': 'de'})

        assert response.get_json()['errors'][0]['message'] == 'invalid:de:acme'

    def test_run_timeout_is_service_unavailable(self, client, routes):
        response = client.get('/slow?a=1')

        assert response.status_code == 503
        assert response.get_json()['error']['code'] == 'VALIDATION_RUN_TIMEOUT'


class TestRequestHelpers:
    """Helpers outside a decorated view."""

    def test_validation_result_without_validation(self, app):
        with app.test_request_context('/'):
            assert validation_result().is_empty()
            assert matched_data() == {}
