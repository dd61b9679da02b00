"""Tests for CMStateStore against a mocked custom objects API."""

import json
from unittest.mock import MagicMock, patch

import pytest
import urllib3.exceptions
from kubernetes.client.rest import ApiException

from cmstate_injector.errors import (
    AdmissionTimeoutError,
    StoreReadError,
    StoreWriteError,
    TemplateNotFoundError,
)
from cmstate_injector.models import CMAudience, CMState
from cmstate_injector.utils.kubernetes import (
    CMStateStore,
    api_error_message,
    is_transport_timeout,
    load_kubernetes_config,
)


def api_exception(status, reason, message=None):
    error = ApiException(status=status, reason=reason)
    if message is not None:
        error.body = json.dumps({"kind": "Status", "message": message})
    return error


def state_resource(audience):
    return {
        "apiVersion": "cache.spices.dev/v1alpha1",
        "kind": "CMState",
        "metadata": {"name": "cmstate-foo-bar", "namespace": "ns"},
        "spec": {
            "audience": [{"kind": "Pod", "name": n} for n in audience],
            "cmtemplate": "Foo_Bar",
        },
    }


@pytest.fixture
def mock_api():
    return MagicMock()


@pytest.fixture
def k8s_store(mock_api):
    return CMStateStore(api=mock_api, request_timeout=3.0)


class TestGetState:
    @pytest.mark.asyncio
    async def test_returns_state(self, k8s_store, mock_api):
        mock_api.get_namespaced_custom_object.return_value = state_resource(["app-1"])

        state = await k8s_store.get_state("ns", "cmstate-foo-bar")

        assert state.name == "cmstate-foo-bar"
        assert [m.name for m in state.spec.audience] == ["app-1"]
        mock_api.get_namespaced_custom_object.assert_called_once_with(
            group="cache.spices.dev",
            version="v1alpha1",
            namespace="ns",
            plural="cmstates",
            name="cmstate-foo-bar",
            _request_timeout=3.0,
        )

    @pytest.mark.asyncio
    async def test_not_found_is_none(self, k8s_store, mock_api):
        mock_api.get_namespaced_custom_object.side_effect = api_exception(
            404, "Not Found"
        )

        assert await k8s_store.get_state("ns", "cmstate-foo-bar") is None

    @pytest.mark.asyncio
    async def test_other_errors_raise_read_error(self, k8s_store, mock_api):
        mock_api.get_namespaced_custom_object.side_effect = api_exception(
            403, "Forbidden", "cmstates is forbidden"
        )

        with pytest.raises(StoreReadError) as exc_info:
            await k8s_store.get_state("ns", "cmstate-foo-bar")

        assert exc_info.value.status == 403
        assert "cmstates is forbidden" in str(exc_info.value)
        assert not exc_info.value.denied

    @pytest.mark.asyncio
    async def test_null_audience_decodes_as_empty(self, k8s_store, mock_api):
        resource = state_resource([])
        resource["spec"]["audience"] = None
        mock_api.get_namespaced_custom_object.return_value = resource

        state = await k8s_store.get_state("ns", "cmstate-foo-bar")

        assert state.spec.audience == []

    @pytest.mark.asyncio
    async def test_connection_failure_raises_read_error(self, k8s_store, mock_api):
        mock_api.get_namespaced_custom_object.side_effect = ConnectionRefusedError()

        with pytest.raises(StoreReadError):
            await k8s_store.get_state("ns", "cmstate-foo-bar")

    @pytest.mark.asyncio
    async def test_malformed_state_raises_read_error(self, k8s_store, mock_api):
        mock_api.get_namespaced_custom_object.return_value = {
            "spec": {"audience": [{"kind": "Pod"}]}
        }

        with pytest.raises(StoreReadError) as exc_info:
            await k8s_store.get_state("ns", "cmstate-foo-bar")

        assert "decoding cmstate ns/cmstate-foo-bar" in str(exc_info.value)
        assert exc_info.value.code == 500


class TestGetTemplate:
    @pytest.mark.asyncio
    async def test_returns_template(self, k8s_store, mock_api):
        mock_api.get_cluster_custom_object.return_value = {
            "metadata": {"name": "Foo_Bar"},
            "spec": {"template": {"annotationReplace": {"team": "x", "env": "y"}}},
        }

        template = await k8s_store.get_template("Foo_Bar")

        assert template.name == "Foo_Bar"
        assert template.replace_keys == ["team", "env"]
        mock_api.get_cluster_custom_object.assert_called_once_with(
            group="cache.spices.dev",
            version="v1alpha1",
            plural="cmtemplates",
            name="Foo_Bar",
            _request_timeout=3.0,
        )

    @pytest.mark.asyncio
    async def test_not_found_raises(self, k8s_store, mock_api):
        mock_api.get_cluster_custom_object.side_effect = api_exception(
            404, "Not Found"
        )

        with pytest.raises(TemplateNotFoundError) as exc_info:
            await k8s_store.get_template("Foo_Bar")

        assert exc_info.value.code == 500
        assert "Foo_Bar" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_server_error_raises_read_error(self, k8s_store, mock_api):
        mock_api.get_cluster_custom_object.side_effect = api_exception(
            500, "Internal Server Error"
        )

        with pytest.raises(StoreReadError) as exc_info:
            await k8s_store.get_template("Foo_Bar")

        assert not isinstance(exc_info.value, TemplateNotFoundError)

    @pytest.mark.asyncio
    async def test_malformed_template_raises_read_error(self, k8s_store, mock_api):
        mock_api.get_cluster_custom_object.return_value = {
            "metadata": {"name": "Foo_Bar"},
            "spec": {"template": {"annotationReplace": ["team"]}},
        }

        with pytest.raises(StoreReadError) as exc_info:
            await k8s_store.get_template("Foo_Bar")

        assert "decoding cmtemplate Foo_Bar" in str(exc_info.value)


class TestCreateState:
    @pytest.mark.asyncio
    async def test_posts_resource(self, k8s_store, mock_api):
        state = CMState.model_validate(state_resource(["app-1"]))
        mock_api.create_namespaced_custom_object.return_value = state_resource(
            ["app-1"]
        )

        created = await k8s_store.create_state(state)

        assert created.name == "cmstate-foo-bar"
        kwargs = mock_api.create_namespaced_custom_object.call_args.kwargs
        assert kwargs["namespace"] == "ns"
        assert kwargs["plural"] == "cmstates"
        assert kwargs["body"]["spec"]["audience"] == [{"kind": "Pod", "name": "app-1"}]

    @pytest.mark.asyncio
    async def test_conflict_raises_write_error(self, k8s_store, mock_api):
        mock_api.create_namespaced_custom_object.side_effect = api_exception(
            409,
            "Conflict",
            'cmstates.cache.spices.dev "cmstate-foo-bar" already exists',
        )
        state = CMState.model_validate(state_resource(["app-1"]))

        with pytest.raises(StoreWriteError) as exc_info:
            await k8s_store.create_state(state)

        error = exc_info.value
        assert error.conflict
        assert error.denied
        assert str(error).startswith("creating cmstate has resulted in an error")
        assert "already exists" in str(error)


class TestPatchAudience:
    @pytest.mark.asyncio
    async def test_sends_merge_patch(self, k8s_store, mock_api):
        state = CMState.model_validate(state_resource(["app-0", "app-1"]))
        mock_api.patch_namespaced_custom_object.return_value = state_resource(
            ["app-0"]
        )

        await k8s_store.patch_audience(state, [CMAudience(name="app-0")])

        mock_api.patch_namespaced_custom_object.assert_called_once_with(
            group="cache.spices.dev",
            version="v1alpha1",
            namespace="ns",
            plural="cmstates",
            name="cmstate-foo-bar",
            body={"spec": {"audience": [{"kind": "Pod", "name": "app-0"}]}},
            _content_type="application/merge-patch+json",
            _request_timeout=3.0,
        )

    @pytest.mark.asyncio
    async def test_empty_audience_is_sent_as_empty_list(self, k8s_store, mock_api):
        state = CMState.model_validate(state_resource(["app-1"]))
        mock_api.patch_namespaced_custom_object.return_value = state_resource([])

        await k8s_store.patch_audience(state, [])

        body = mock_api.patch_namespaced_custom_object.call_args.kwargs["body"]
        assert body == {"spec": {"audience": []}}

    @pytest.mark.asyncio
    async def test_failure_raises_write_error(self, k8s_store, mock_api):
        mock_api.patch_namespaced_custom_object.side_effect = api_exception(
            422, "Unprocessable Entity"
        )
        state = CMState.model_validate(state_resource(["app-1"]))

        with pytest.raises(StoreWriteError) as exc_info:
            await k8s_store.patch_audience(state, [])

        assert exc_info.value.status == 422
        assert "patching cmstate has resulted in an error" in str(exc_info.value)


class TestTransportErrors:
    @pytest.mark.asyncio
    async def test_read_timeout_is_admission_timeout(self, k8s_store, mock_api):
        mock_api.get_namespaced_custom_object.side_effect = (
            urllib3.exceptions.ReadTimeoutError(None, "/apis", "Read timed out.")
        )

        with pytest.raises(AdmissionTimeoutError):
            await k8s_store.get_state("ns", "cmstate-foo-bar")

    @pytest.mark.asyncio
    async def test_retry_exhaustion_on_timeout_is_admission_timeout(
        self, k8s_store, mock_api
    ):
        timeout = urllib3.exceptions.ConnectTimeoutError("connect timed out")
        mock_api.get_cluster_custom_object.side_effect = (
            urllib3.exceptions.MaxRetryError(None, "/apis", reason=timeout)
        )

        with pytest.raises(AdmissionTimeoutError):
            await k8s_store.get_template("Foo_Bar")

    @pytest.mark.asyncio
    async def test_other_transport_errors_are_store_errors(self, k8s_store, mock_api):
        mock_api.create_namespaced_custom_object.side_effect = (
            urllib3.exceptions.ProtocolError("connection aborted")
        )
        state = CMState.model_validate(state_resource(["app-1"]))

        with pytest.raises(StoreWriteError):
            await k8s_store.create_state(state)

    def test_is_transport_timeout(self):
        assert is_transport_timeout(
            urllib3.exceptions.ReadTimeoutError(None, "/", "timed out")
        )
        assert not is_transport_timeout(urllib3.exceptions.ProtocolError("reset"))


class TestApiErrorMessage:
    def test_prefers_status_message(self):
        error = api_exception(409, "Conflict", "already exists")

        assert api_error_message(error) == "already exists"

    def test_falls_back_to_reason(self):
        assert api_error_message(api_exception(500, "Internal Server Error")) == (
            "Internal Server Error"
        )

    def test_non_json_body(self):
        error = api_exception(502, "Bad Gateway")
        error.body = "<html>bad gateway</html>"

        assert api_error_message(error) == "Bad Gateway"


class TestLoadKubernetesConfig:
    @patch("cmstate_injector.utils.kubernetes.config")
    def test_prefers_in_cluster(self, mock_config):
        load_kubernetes_config()

        mock_config.load_incluster_config.assert_called_once()
        mock_config.load_kube_config.assert_not_called()

    def test_falls_back_to_kubeconfig(self):
        from kubernetes import config as k8s_config

        with (
            patch.object(
                k8s_config,
                "load_incluster_config",
                side_effect=k8s_config.ConfigException("not in cluster"),
            ),
            patch.object(k8s_config, "load_kube_config") as load_kube_config,
        ):
            load_kubernetes_config()

        load_kube_config.assert_called_once()
