# product_service/main.py
from fastapi import FastAPI, HTTPException

app = FastAPI(title="Product Service (dev mock)")


PRODUCTS = {
    "frontline": {
        "id": "frontline",
        "name": "Frontline Jersey",
        "price": 1000,
        "image": "/images/frontline.jpg",
        "stock": {"S": 5, "M": 2, "L": 5, "XL": 0},
    },
    "crossfade": {
        "id": "crossfade",
        "name": "Crossfade Tee",
        "price": 500,
        "image": "/images/crossfade.jpg",
        "stock": {"S": 3, "M": 3, "L": 3, "XL": 3},
    },
    "matchday-cap": {
        "id": "matchday-cap",
        "name": "Matchday Cap",
        "price": 349.5,
        "image": "/images/matchday-cap.jpg",
    },
}


@app.get("/products/{product_id}")
def get_product(product_id: str):
    product = PRODUCTS.get(product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return product
