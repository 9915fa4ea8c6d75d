from __future__ import annotations

from docblock_mcp.services.error_responses import clean_response_message, extract_error_responses


def test_json_and_abort_families() -> None:
    body = """public function refund(Order $order)
    {
        abort_if($order->refunded, 409, 'Order already refunded');
        abort_unless($order->paid, 402);
        abort(403, 'Refunds are closed');
        if ($order->locked) {
            return response()->json(['error' => 'Order is locked'], 423);
        }
        return response()->json(['status' => 'ok'], 200);
    }"""
    responses = extract_error_responses(body)

    assert sorted(responses) == [402, 403, 409, 423]
    assert responses[409].message == "Order already refunded"
    assert responses[402].message == "Payment Required"
    assert responses[403].message == "Refunds are closed"
    assert responses[423].message == "Order is locked"


def test_json_family_wins_over_abort_for_the_same_status() -> None:
    body = """public function show($id)
    {
        abort(404, 'From abort');
        return response()->json(['message' => 'From json'], 404);
    }"""
    responses = extract_error_responses(body)

    assert responses[404].message == "From json"


def test_first_occurrence_wins_and_redirects_are_dropped() -> None:
    body = """public function show($id)
    {
        if ($id < 0) {
            return response()->json(['message' => 'First'], 404);
        }
        if ($id > 100) {
            return response()->json(['message' => 'Second'], 404);
        }
        return response()->json(['location' => '/elsewhere'], 302);
    }"""
    responses = extract_error_responses(body)

    assert list(responses) == [404]
    assert responses[404].message == "First"


def test_clean_response_message() -> None:
    assert clean_response_message("  ['Not allowed']  ") == "Not allowed"
    assert len(clean_response_message("x" * 250)) == 100
