# [파일 설명]
# - 목적: API 및 서비스 테스트에서 공통으로 쓰는 경로 설정과 PHP 샘플 소스를 제공한다.
# - 제공 기능: 저장소 루트를 sys.path에 추가하고 컨트롤러/폼 요청/모델 픽스처를 정의한다.
# - 입력/출력: 고정 PHP 텍스트를 반환하며 테스트 통과 여부로 결과를 확인한다.
# - 주의 사항: 샘플 소스는 결정론적 결과 검증을 위해 변경 시 기대값도 함께 갱신해야 한다.
# - 연관 모듈: docblock_mcp.main/docblock_mcp.api.mcp 및 서비스 레이어와 연동된다.
from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

ORDER_CONTROLLER = """<?php

namespace App\\Http\\Controllers;

use App\\Jobs\\ProcessOrder;
use App\\Models\\Order;
use Illuminate\\Http\\Request;
use Illuminate\\Support\\Facades\\DB;

class OrderController extends Controller
{
    public function __construct()
    {
        $this->middleware('auth:sanctum', ['only' => ['store', 'destroy']]);
    }

    public function store(Request $request)
    {
        $data = $request->validate([
            'email' => 'required|email',
            'amount' => 'required|numeric',
        ]);

        $order = DB::transaction(function () use ($data) {
            return Order::create($data);
        });

        ProcessOrder::dispatch($order);

        return response()->json($order, 201);
    }

    public function destroy(Order $order)
    {
        $order->delete();

        return response()->json(null, 204);
    }
}
"""

PRODUCT_CONTROLLER = """<?php

namespace App\\Http\\Controllers;

use App\\Http\\Requests\\StoreProductRequest;
use App\\Models\\Product;

class ProductController extends Controller
{
    public function index()
    {
        return Product::with(['category', 'tags'])->paginate(15);
    }

    public function show($id)
    {
        $product = Product::find($id);
        if (!$product) {
            return response()->json(['message' => 'Product missing'], 404);
        }

        return response()->json($product);
    }

    public function store(StoreProductRequest $request)
    {
        $product = Product::create($request->validated());

        return response()->json($product, 201);
    }

    private function audit(Product $product)
    {
        return $product->id;
    }
}
"""

STORE_PRODUCT_REQUEST = """<?php

namespace App\\Http\\Requests;

use Illuminate\\Foundation\\Http\\FormRequest;
use Illuminate\\Validation\\Rule;

class StoreProductRequest extends FormRequest
{
    public function rules(): array
    {
        return [
            'name' => 'required|string|max:255',
            'status' => ['required', Rule::in(['draft', 'published'])],
            'tag_ids' => 'array',
            'tag_ids.*' => 'integer|exists:tags,id',
        ];
    }
}
"""

PRODUCT_MODEL = """<?php

namespace App\\Models;

use Illuminate\\Database\\Eloquent\\Model;

class Product extends Model
{
    protected $fillable = ['name', 'price', 'is_active', 'secret_note'];

    protected $hidden = ['secret_note'];

    protected $casts = [
        'price' => 'decimal:2',
        'is_active' => 'boolean',
    ];
}
"""


@pytest.fixture
def order_controller_source() -> str:
    return ORDER_CONTROLLER


@pytest.fixture
def product_controller_source() -> str:
    return PRODUCT_CONTROLLER


@pytest.fixture
def product_related_sources() -> list[str]:
    return [STORE_PRODUCT_REQUEST, PRODUCT_MODEL]
